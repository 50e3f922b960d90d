MASK = "***"


def mask_code(code: str) -> str:
    """Mask a referral code for logging.

    Codes longer than four characters keep their first two and last two
    characters; shorter codes keep only the first character.

    Args:
        code: Referral code to mask.

    Returns:
        str: Masked code, safe to write to logs.

    Examples:
        >>> mask_code("ALICE2024")
        'AL***24'
        >>> mask_code("abcd")
        'a***'
    """
    if len(code) > 4:
        return f"{code[:2]}{MASK}{code[-2:]}"
    return f"{code[:1]}{MASK}"
