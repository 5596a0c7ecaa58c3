from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single environment setting a client needs before it can be used.

    Attributes:
        env_key (str): The raw key, prefixed by the client as {TYPE}_{ENGINE}_{KEY}.
        val_type (str): Expected value type: "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Value used when the variable is unset.
            None marks the setting as mandatory; a missing mandatory setting raises ValueError.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None
