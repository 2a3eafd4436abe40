"""
Utility functions for occupation codes and titles.
"""

from typing import Any, Optional


def normalize_occupation_code(code: Any, width: int = 5) -> str:
    """
    Normalize an occupation code to a fixed-width, zero-padded string.
    
    Spreadsheet exports often turn codes into numbers ("00011" -> 11 or
    11.0); this restores the padding.
    
    Args:
        code: Raw code value
        width: Code width (NOC 2021 codes have 5 digits)
        
    Returns:
        Zero-padded code string
        
    Example:
        >>> normalize_occupation_code(11.0)
        '00011'
    """
    if code is None:
        raise ValueError("Occupation code is missing")
    
    text = str(code).strip()
    if text.endswith(".0"):
        text = text[:-2]
    
    if text.isdigit():
        return text.zfill(width)
    return text


def teer_level(code: str) -> Optional[int]:
    """
    TEER category encoded in a 5-digit NOC 2021 code (its second digit).
    
    Returns:
        TEER level 0-5, or None if the code is not a 5-digit number
        
    Example:
        >>> teer_level("21231")
        1
    """
    code = str(code)
    if len(code) != 5 or not code.isdigit():
        return None
    return int(code[1])
