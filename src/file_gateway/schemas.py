####################################
# --- Request/response schemas --- #
####################################

from pydantic import BaseModel, ConfigDict, Field


class FileInfo(BaseModel):
    """Response model for `POST /files/{filename}` and `POST /wxfiles/{filename}`."""
    name: str = Field(
        description="The name the file was stored under.",
        json_schema_extra={"example": "photo.jpg"},
    )
    url: str = Field(
        description="Where the stored file can be downloaded from.",
        json_schema_extra={"example": "http://localhost:8000/files/default/photo.jpg"},
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "photo.jpg",
                "url": "http://localhost:8000/files/default/photo.jpg",
            }
        }
    )


class ErrorResponse(BaseModel):
    """Body of every error the gateway reports as JSON."""
    code: int
    error: str
