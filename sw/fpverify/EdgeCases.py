import warnings
from typing import List, Tuple

from .Decoder import ExactValue
from .Format import FloatFormat, InfScheme, NanScheme, NegativeZero, SubnormalMode
from .Rounder import FormatRounder, RepresentationWarning


def _nan_boundaries(fmt: FloatFormat) -> List[int]:
    """Quiet/signaling NaN payload boundaries of a reserved-exponent format."""
    mb = fmt.layout.mant_bits
    j = fmt.j_bit
    if fmt.encoding.has_implicit_bit:
        quiet = 1 << (mb - 1)
        fraction_mask = fmt.mant_mask
    else:
        quiet = 1 << (mb - 2)
        fraction_mask = j - 1

    mantissas = [
        quiet,                  # quiet, empty payload
        fraction_mask,          # quiet, max payload
        1,                      # signaling, min payload
        quiet - 1,              # signaling, max payload
    ]
    patterns = []
    for m in mantissas:
        if m & fraction_mask == 0:
            continue
        patterns.append(FormatRounder.pack_magnitude(fmt.exp_max, j | m, fmt))
    return patterns


def _explicit_bit_cases(fmt: FloatFormat) -> List[int]:
    """Non-canonical explicit-bit patterns: unnormals, pseudo-denormals, pseudo-specials."""
    j = fmt.j_bit
    def pm(exp_field, mant_field):
        return FormatRounder.pack_magnitude(exp_field, mant_field, fmt)

    cases = []

    exponents = [e for e in (1, 2, fmt.bias, fmt.exp_max - 1) if 1 <= e <= fmt.max_biased_exp]
    for e in exponents:
        cases.append(pm(e, j >> 1))
        cases.append(pm(e, j - 1))
    if exponents:
        cases.append(FormatRounder.negate_bits(pm(exponents[0], j - 1), fmt))

    # Unnormal zeros
    for e in exponents[:2]:
        cases.append(pm(e, 0))

    # Pseudo-denormals
    cases.append(pm(0, j))
    cases.append(pm(0, j | 1))
    cases.append(FormatRounder.negate_bits(pm(0, j), fmt))

    if fmt.encoding.inf_scheme == InfScheme.RESERVED_EXPONENT:
        pseudo_inf = pm(fmt.exp_max, 0)
        cases.append(pseudo_inf)
        cases.append(FormatRounder.negate_bits(pseudo_inf, fmt))
    if fmt.encoding.nan_scheme == NanScheme.RESERVED_EXPONENT:
        cases.append(pm(fmt.exp_max, j >> 1))
        cases.append(pm(fmt.exp_max, 1))
    return cases


def generate(fmt: FloatFormat) -> List[int]:
    """
    Boundary bit patterns of a format, de-duplicated in first-seen order.

    Args:
        fmt (FloatFormat): Target format

    Returns:
        list[int]: Deterministic list of bit patterns
    """
    enc = fmt.encoding
    rmb = fmt.rounding_mant_bits
    j = fmt.j_bit
    def pm(exp_field, mant_field):
        return FormatRounder.pack_magnitude(exp_field, mant_field, fmt)

    signed = FormatRounder.apply_sign
    signs = (False, True) if fmt.layout.sign_bits else (False,)

    def rnd(negative, significand, exponent):
        return FormatRounder.round_to_format(ExactValue.finite(negative, significand, exponent), fmt)

    cases = [FormatRounder.signed_zero(fmt, False)]
    if enc.negative_zero == NegativeZero.EXISTS:
        cases.append(FormatRounder.signed_zero(fmt, True))

    if enc.inf_scheme != InfScheme.NONE:
        cases.extend(FormatRounder.canonical_inf(fmt, negative) for negative in signs)

    if enc.nan_scheme != NanScheme.NONE:
        qnan = FormatRounder.canonical_nan(fmt)
        cases.append(qnan)
        if enc.nan_scheme == NanScheme.RESERVED_EXPONENT:
            cases.extend(_nan_boundaries(fmt))
            cases.append(FormatRounder.negate_bits(qnan, fmt))

    if enc.subnormal_mode != SubnormalMode.NONE:
        for negative in signs:
            cases.append(signed(pm(0, 1), negative, fmt))              # min subnormal
            cases.append(signed(pm(0, (1 << rmb) - 1), negative, fmt))  # max subnormal

    for negative in signs:
        cases.append(signed(pm(1, j), negative, fmt))  # min normal
        cases.append(FormatRounder.max_finite(fmt, negative))

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RepresentationWarning)
        cases.append(rnd(False, 1, 0))                        # 1.0
        cases.append(rnd(True, 1, 0))                         # -1.0
        cases.append(rnd(False, 1, 1))                        # 2.0
        cases.append(rnd(False, 1, -1))                       # 0.5
        cases.append(rnd(False, (1 << rmb) + 1, -rmb))        # 1.0 + 1 ULP
        cases.append(rnd(False, (1 << (rmb + 1)) - 1, -(rmb + 1)))  # 1.0 - 1 ULP
        cases.append(rnd(False, 1, -rmb))                     # machine epsilon
    cases.append(pm(1, j | 1))                                # min normal + 1 ULP

    if not enc.has_implicit_bit:
        cases.extend(_explicit_bit_cases(fmt))

    return list(dict.fromkeys(cases))


def equivalence_pairs(fmt: FloatFormat) -> List[Tuple[str, int, int]]:
    """
    Non-canonical explicit-bit patterns paired with their canonical counterpart.

    Returns:
        list[tuple]: (description, non_canonical_bits, canonical_bits); empty for
                     implicit-bit formats
    """
    if fmt.encoding.has_implicit_bit:
        return []
    j = fmt.j_bit
    def pm(exp_field, mant_field):
        return FormatRounder.pack_magnitude(exp_field, mant_field, fmt)

    pairs = [
        ("unnormal exp=1 / denormal", pm(1, j - 1), pm(0, j - 1)),
        ("pseudo-denormal / min normal", pm(0, j), pm(1, j)),
        ("pseudo-denormal / min normal + 1 ULP", pm(0, j | 1), pm(1, j | 1)),
        ("unnormal zero", pm(1, 0), 0),
    ]
    for e in (2, fmt.bias, fmt.max_biased_exp):
        if 2 <= e <= fmt.max_biased_exp:
            pairs.append((f"unnormal exp={e}", pm(e, j >> 1), pm(e - 1, j)))

    pairs.append(("negative pseudo-denormal",
                  FormatRounder.negate_bits(pm(0, j), fmt),
                  FormatRounder.negate_bits(pm(1, j), fmt)))

    if fmt.encoding.inf_scheme == InfScheme.RESERVED_EXPONENT:
        pairs.append(("pseudo-infinity", pm(fmt.exp_max, 0), FormatRounder.canonical_inf(fmt, False)))
        pairs.append(("negative pseudo-infinity",
                      FormatRounder.negate_bits(pm(fmt.exp_max, 0), fmt),
                      FormatRounder.canonical_inf(fmt, True)))
    if fmt.encoding.nan_scheme == NanScheme.RESERVED_EXPONENT:
        pairs.append(("pseudo-NaN", pm(fmt.exp_max, j >> 1), FormatRounder.canonical_nan(fmt)))

    # Dedupe pairs that coincide for narrow exponent fields
    return list(dict.fromkeys(pairs))
