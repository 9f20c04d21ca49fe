from datetime import datetime, timezone
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

ADMIN_ROLES = ("admin", "superadmin")


class GroupParticipant(BaseModel):
    """Participant entry as reported by the transport."""

    id: str
    admin: Optional[str] = None


class GroupMetadata(BaseModel):
    """Group entry as reported by the transport."""

    id: str
    subject: str = ""
    desc: Optional[str] = None
    creation: Optional[int] = None
    subject_owner: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("subject_owner", "subjectOwner")
    )
    participants: list[GroupParticipant] = Field(default_factory=list)


class GroupMember(BaseModel):
    id: str
    is_admin: bool
    is_super_admin: bool


class GroupSummary(BaseModel):
    id: str
    name: str
    description: str = ""
    participants_count: int = 0
    is_admin: bool = False
    created_at: Optional[datetime] = None
    created_by: str = ""
    participants: list[GroupMember] = Field(default_factory=list)

    @classmethod
    def from_metadata(cls, meta: GroupMetadata, own_jid: Optional[str] = None) -> "GroupSummary":
        own_user = same_user_key(own_jid) if own_jid else None
        members = [
            GroupMember(
                id=participant.id,
                is_admin=participant.admin in ADMIN_ROLES,
                is_super_admin=participant.admin == "superadmin",
            )
            for participant in meta.participants
        ]
        is_admin = own_user is not None and any(
            member.is_admin and same_user_key(member.id) == own_user for member in members
        )
        return cls(
            id=meta.id,
            name=meta.subject,
            description=meta.desc or "",
            participants_count=len(members),
            is_admin=is_admin,
            created_at=datetime.fromtimestamp(meta.creation, tz=timezone.utc) if meta.creation else None,
            created_by=meta.subject_owner or "",
            participants=members,
        )


def same_user_key(jid: str) -> str:
    """Strip the server and device suffix: ``628111:12@s.whatsapp.net`` -> ``628111``."""
    return jid.split("@")[0].split(":")[0]
