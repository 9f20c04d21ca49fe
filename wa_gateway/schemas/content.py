"""Inbound message payload shapes, one model per content kind."""

from typing import Annotated, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field


class ContextInfo(BaseModel):
    participant: Optional[str] = None
    stanza_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("stanza_id", "stanzaId"))


class TextContent(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class ExtendedTextContent(BaseModel):
    kind: Literal["extended_text"] = "extended_text"
    text: str
    context_info: Optional[ContextInfo] = Field(
        default=None, validation_alias=AliasChoices("context_info", "contextInfo")
    )


class _Media(BaseModel):
    mimetype: Optional[str] = None
    file_length: Optional[int] = Field(default=None, validation_alias=AliasChoices("file_length", "fileLength"))


class ImageContent(_Media):
    kind: Literal["image"] = "image"
    caption: Optional[str] = None


class VideoContent(_Media):
    kind: Literal["video"] = "video"
    caption: Optional[str] = None


class AudioContent(_Media):
    kind: Literal["audio"] = "audio"
    seconds: Optional[int] = None
    ptt: bool = False


class DocumentContent(_Media):
    kind: Literal["document"] = "document"
    file_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("file_name", "fileName"))
    caption: Optional[str] = None


class StickerContent(_Media):
    kind: Literal["sticker"] = "sticker"


class LocationContent(BaseModel):
    kind: Literal["location"] = "location"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    name: Optional[str] = None


class ContactContent(BaseModel):
    kind: Literal["contact"] = "contact"
    display_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("display_name", "displayName")
    )
    vcard: Optional[str] = None


class GenericMediaContent(_Media):
    """Media the transport recognises but no dedicated variant covers."""

    kind: Literal["media"] = "media"


class UnknownContent(BaseModel):
    kind: Literal["unknown"] = "unknown"
    raw_type: Optional[str] = None


MessageContent = Annotated[
    Union[
        TextContent,
        ExtendedTextContent,
        ImageContent,
        VideoContent,
        AudioContent,
        DocumentContent,
        StickerContent,
        LocationContent,
        ContactContent,
        GenericMediaContent,
        UnknownContent,
    ],
    Field(discriminator="kind"),
]

CAPTIONED_CONTENT = (ImageContent, VideoContent, DocumentContent)
