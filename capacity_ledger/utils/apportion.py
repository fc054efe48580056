"""Répartition entière / Integer apportionment."""


def apportion(total: int, weights: list[int], caps: list[int] | None = None) -> list[int]:
    """
    Répartir `total` secondes au prorata des poids / Split `total` seconds in proportion to weights.

    Part de base = floor(total * poids / somme des poids), plafonnée par `caps`.
    Ce qu'une entrée plafonnée ne peut pas prendre est réparti entre les autres.
    Les secondes d'arrondi vont, une par une, aux plus grands restes
    (à égalité, l'ordre d'origine décide).
    Base share = floor(total * weight / weight sum), capped by `caps`.
    Whatever a capped entry cannot take is spread over the others.
    Rounding seconds go one at a time to the largest remainders
    (ties broken by original order).

    La somme retournée vaut `total` sauf si les plafonds l'empêchent.
    The returned sum equals `total` unless the caps prevent it.
    """
    count = len(weights)
    limits = caps if caps is not None else [None] * count
    shares = [0] * count
    leftover = max(total, 0)
    active = [i for i in range(count) if weights[i] > 0 and (limits[i] is None or limits[i] > 0)]

    while leftover > 0 and active:
        weight_sum = sum(weights[i] for i in active)
        remainders: dict[int, int] = {}
        saturated = False
        handed_out = 0
        for i in active:
            share, remainder = divmod(leftover * weights[i], weight_sum)
            if limits[i] is not None and share >= limits[i] - shares[i]:
                share, remainder, saturated = limits[i] - shares[i], -1, True
            shares[i] += share
            handed_out += share
            remainders[i] = remainder
        leftover -= handed_out
        active = [i for i in active if limits[i] is None or shares[i] < limits[i]]
        if saturated:
            continue

        for i in sorted(active, key=lambda i: (-remainders[i], i)):
            if leftover <= 0:
                break
            shares[i] += 1
            leftover -= 1
        break
    return shares
