from pydantic import BaseModel, ConfigDict, Field


class S3Bucket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str


class S3Object(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str  # URL-encoded, spaces as "+"
    size: int | None = None


class S3Entity(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    bucket: S3Bucket
    object_: S3Object = Field(alias="object")


class S3EventRecord(BaseModel):
    """S3 event notification: one object created or changed."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    event_name: str = Field(default="", alias="eventName")
    event_source: str = Field(default="aws:s3", alias="eventSource")
    s3: S3Entity

    @property
    def bucket_name(self) -> str:
        return self.s3.bucket.name

    @property
    def raw_key(self) -> str:
        return self.s3.object_.key
