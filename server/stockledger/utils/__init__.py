from .money import QUANTITY_TOLERANCE, line_amount, quantize_money, to_decimal

__all__ = ["QUANTITY_TOLERANCE", "line_amount", "quantize_money", "to_decimal"]
