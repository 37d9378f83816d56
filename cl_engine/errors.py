"""
Error taxonomy for the liquidity math engine.

TickMath and the amount calculator fail fast with these errors: a wrong
number feeding a deposit transaction is worse than no number.
The distribution aggregator only warns (MalformedSampleWarning) and keeps going.
"""


class LiquidityMathError(ValueError):
    """Базовая ошибка движка."""
    pass


class InvalidPriceError(LiquidityMathError):
    """Цена не положительная, NaN или бесконечность."""
    pass


class InvalidInputError(LiquidityMathError):
    """Сумма депозита или параметр расчёта невалидны."""
    pass


class DegenerateRangeError(LiquidityMathError):
    """Диапазон цен нулевой ширины или перевёрнут."""
    pass


class MalformedSampleWarning(UserWarning):
    """Часть сырых записей ликвидности не распарсилась и была пропущена."""
    pass
