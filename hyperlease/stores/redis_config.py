from pydantic import BaseModel, StrictBool, StrictFloat, StrictInt, StrictStr


class RedisConfig(BaseModel):
    host: StrictStr = "localhost"
    port: StrictInt = 6379
    username: StrictStr | None = None
    password: StrictStr | None = None
    database: StrictInt = 0
    secure: StrictBool = False
    timeout: StrictInt | StrictFloat = 5.0

    @property
    def url(self) -> str:
        base = "rediss" if self.secure else "redis"
        return f"{base}://{self.host}:{self.port}"
