from ulid import ULID


def new_ulid(prefix: str | None = None) -> str:
    value = str(ULID()).lower()
    return f"{prefix}{value}" if prefix else value


def new_stream_id() -> str:
    return new_ulid("st_")


def new_payment_id() -> str:
    return new_ulid("pa_")


def new_room_name() -> str:
    return new_ulid("room_")
