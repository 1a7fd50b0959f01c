from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single environment setting a client reads on construction.

    Attributes:
        env_key (str): Key suffix of the environment variable. The client prefixes it with
            "<CLIENT_TYPE>_<ENGINE>_", e.g. "REST_URL" becomes "VECTOR_UPSTASH_REST_URL".
        val_type (str): Expected value type: "string", "number", "bool" or "list".
        default (str | int | bool | list | None): Value used when the variable is unset.
            None marks the setting as mandatory.
    """

    env_key: str
    val_type: str
    default: str | int | bool | list | None = None
