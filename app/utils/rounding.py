import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (0.5 -> 1, 12.5 -> 13).

    Built-in ``round`` sends halves to the even neighbour, which would show
    1 of 8 as 12%.
    """
    return int(math.floor(value + 0.5))
