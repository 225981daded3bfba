import shortuuid

RESET_TOKEN_LENGTH = 40


def new_id() -> str:
    """Primary key for every entity table (22 url-safe characters)."""
    return shortuuid.uuid()


def generate_reset_token(length: int = RESET_TOKEN_LENGTH) -> str:
    return shortuuid.ShortUUID().random(length=length)
