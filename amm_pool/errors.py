"""
Error taxonomy for the liquidity pool program.

Every failure raised while processing an instruction derives from
ProgramError. The pool-specific variants carry the custom error code the
program reports to its host.
"""


class ProgramError(Exception):
    """Base class for errors surfaced by the program."""
    pass


class NotEnoughAccountKeys(ProgramError):
    """Raised when the instruction supplies fewer accounts than required."""
    pass


class InvalidInstructionData(ProgramError):
    """Raised when instruction bytes cannot be decoded."""
    pass


class AccountDataTooSmall(ProgramError):
    """Raised when an account buffer cannot hold the record written to it."""
    pass


class LiquidityPoolError(ProgramError):
    """Base class for the pool's custom errors."""
    code = None


class InvalidAccount(LiquidityPoolError):
    """An account is missing a required property or does not match the pool record."""
    code = 0


class AlreadyInitialized(LiquidityPoolError):
    """The pool account already holds a record."""
    code = 1


class NotInitialized(LiquidityPoolError):
    """The pool account holds no record yet."""
    code = 2


class InvalidAmount(LiquidityPoolError):
    """An amount that is zero or out of range."""
    code = 3


class InsufficientLiquidity(LiquidityPoolError):
    """The pool has no reserves to trade against."""
    code = 4


class ArithmeticOverflow(LiquidityPoolError):
    """A reserve or share computation left the u64 range."""
    code = 5


class InvalidTokenPair(InvalidAmount):
    """Both sides of the pool name the same mint."""
    code = 6


class Unauthorized(LiquidityPoolError):
    """The user account did not sign."""
    code = 7


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        InvalidAccount,
        AlreadyInitialized,
        NotInitialized,
        InvalidAmount,
        InsufficientLiquidity,
        ArithmeticOverflow,
        InvalidTokenPair,
        Unauthorized,
    )
}


def error_from_code(code: int) -> type:
    """Look up the pool error class for a custom error code."""
    try:
        return ERRORS_BY_CODE[code]
    except KeyError:
        raise ValueError(f"Unknown pool error code: {code}") from None
