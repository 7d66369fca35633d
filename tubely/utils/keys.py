import base64
import secrets

from tubely.media.probe import AspectClass

KEY_RANDOM_BYTES = 32


class EntropyError(RuntimeError):
    pass


def generate_object_key(aspect: AspectClass) -> str:
    """
    Build `<aspect>/<random>.mp4` where <random> is 32 random bytes,
    URL-safe base64 encoded without padding (43 characters).
    """
    try:
        random_bytes = secrets.token_bytes(KEY_RANDOM_BYTES)
    except (NotImplementedError, OSError) as e:
        raise EntropyError("Randomness source unavailable") from e

    encoded = base64.urlsafe_b64encode(random_bytes).rstrip(b"=").decode("ascii")
    return f"{AspectClass(aspect).value}/{encoded}.mp4"
