import math


def round_half_up(value: float) -> int:
    """
    Tam sayıya yuvarlar; tam .5 değerleri her zaman yukarı gider (12.5 -> 13, 94.5 -> 95).
    Python'un round() fonksiyonu .5'i çift sayıya yuvarladığı için yüzdelerde kullanılmaz.
    """
    return math.floor(value + 0.5)
