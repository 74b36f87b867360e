import random
import string


def random_lower_string(length: int = 16) -> str:
    return "".join(random.choices(string.ascii_lowercase, k=length))
