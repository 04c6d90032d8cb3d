"""
Pydantic models for the Commission Assistant.

Defines intent categories, the per-intent parameter models decoded at the
router boundary, the tagged union produced by the classifier, and the reply
returned to the caller.
"""

import re
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    ValidationError,
    field_validator,
    model_validator,
)


class IntentCategory(str, Enum):
    """Every request type the upstream model can hand back."""

    # Listing
    LIST_COMMISSIONS = "list_commissions"
    LIST_MEETINGS = "list_meetings"
    LIST_USERS = "list_users"
    LIST_PVS = "list_pvs"

    # Creation
    CREATE_COMMISSION = "create_commission"
    CREATE_MEETING = "create_meeting"

    # Membership
    ADD_COMMISSION_MEMBER = "add_commission_member"
    REMOVE_COMMISSION_MEMBER = "remove_commission_member"

    # Helpers
    SUGGEST_DETAILS = "suggest_details"
    GENERATE_PV_TEXT = "generate_pv_text"

    # Non-routed variants
    NAVIGATE = "navigate"
    PLAIN_TEXT = "plain_text"


# Categories that mutate state
WRITE_CATEGORIES = frozenset(
    {
        IntentCategory.CREATE_COMMISSION,
        IntentCategory.CREATE_MEETING,
        IntentCategory.ADD_COMMISSION_MEMBER,
        IntentCategory.REMOVE_COMMISSION_MEMBER,
    }
)


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

class ConversationTurn(BaseModel):
    sender: Literal["user", "bot"]
    text: str = Field(max_length=2000)


class ChatRequest(BaseModel):
    """Inbound chatbot request body."""

    message: str = Field(min_length=1, max_length=2000)
    history: List[ConversationTurn] = Field(default_factory=list)

    @field_validator("history", mode="before")
    @classmethod
    def null_history(cls, value: Any) -> Any:
        return [] if value is None else value


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------

class ChatAction(BaseModel):
    """Structured instruction for the frontend (navigate, download)."""

    type: str
    target: Optional[str] = None
    url: Optional[str] = None
    filename: Optional[str] = None
    params: Optional[Dict[str, Any]] = None


class ChatReply(BaseModel):
    """Result of one chatbot turn."""

    reply: str
    suggestions: Optional[Dict[str, Any]] = None
    action: Optional[ChatAction] = None
    status_code: int = 200

    def body(self) -> Dict[str, Any]:
        """JSON body for the HTTP response (status travels separately)."""
        return self.model_dump(exclude={"status_code"}, exclude_none=True)


# ---------------------------------------------------------------------------
# Classifier output (tagged union)
# ---------------------------------------------------------------------------

def _empty_params(value: Any) -> Any:
    # A bare JSON array or null stands for "no params"
    if value is None or value == []:
        return {}
    return value


class NavigateAction(BaseModel):
    type: Literal["navigate"]
    target: Optional[str] = None
    params: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def normalize_params(cls, value: Any) -> Any:
        return _empty_params(value)


class IntentEnvelope(BaseModel):
    kind: Literal["intent"] = "intent"
    intent: StrictStr
    params: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def normalize_params(cls, value: Any) -> Any:
        return _empty_params(value)


class NavigateEnvelope(BaseModel):
    kind: Literal["navigate"] = "navigate"
    action: NavigateAction
    reply: str = "Okay, navigating..."

    @field_validator("reply", mode="before")
    @classmethod
    def default_reply(cls, value: Any) -> Any:
        return "Okay, navigating..." if value in (None, "") else value


class TextEnvelope(BaseModel):
    kind: Literal["text"] = "text"
    text: str


ParsedReply = Annotated[
    Union[IntentEnvelope, NavigateEnvelope, TextEnvelope],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Per-intent parameters
# ---------------------------------------------------------------------------

_GPS_PATTERN = re.compile(r"^-?\d{1,3}(\.\d+)?\s*,\s*-?\d{1,3}(\.\d+)?$")


class IntentParams(BaseModel):
    """Base for parameter models decoded from the upstream ``params`` map.

    ``messages`` maps ``"<field>"`` (missing) or ``"<field>.<error type>"`` to
    the sentence shown to the user when validation fails.
    """

    model_config = ConfigDict(
        extra="ignore",
        coerce_numbers_to_str=True,
        str_strip_whitespace=True,
    )

    messages: ClassVar[Dict[str, str]] = {}
    invalid_prefix: ClassVar[str] = ""
    failure_reply: ClassVar[str] = "Sorry, something went wrong while handling that request."

    @model_validator(mode="before")
    @classmethod
    def drop_empty(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None and v != ""}
        return data

    @classmethod
    def describe_errors(cls, exc: ValidationError) -> str:
        """Turn a ValidationError into one user-facing sentence."""
        sentences = []
        for err in exc.errors():
            field = str(err["loc"][0]) if err["loc"] else ""
            kind = err["type"]
            text = cls.messages.get(f"{field}.{kind}")
            if text is None and kind == "missing":
                text = cls.messages.get(field)
            if text is None and kind == "string_too_long":
                limit = (err.get("ctx") or {}).get("max_length")
                text = f"The {field.replace('_', ' ')} is too long (max {limit} characters)."
            if text is None:
                text = f"{field}: {err['msg']}" if field else err["msg"]
            if text not in sentences:
                sentences.append(text)
        return cls.invalid_prefix + " ".join(sentences)


class NoParams(IntentParams):
    pass


class ListMeetingsParams(IntentParams):
    timeframe: Optional[str] = None
    commission_name_or_id: Optional[str] = None

    failure_reply: ClassVar[str] = "Sorry, I encountered a database error while listing meetings."


class ListUsersParams(IntentParams):
    commission_name_or_id: Optional[str] = None
    name_or_email: Optional[str] = None

    failure_reply: ClassVar[str] = "Sorry, I encountered a database error while listing users."


class ListPvsParams(IntentParams):
    commission_name_or_id: Optional[str] = None
    meeting_title: Optional[str] = None
    timeframe: Optional[str] = None

    failure_reply: ClassVar[str] = "Sorry, I encountered a database error while listing PVs."


class CreateCommissionParams(IntentParams):
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=1000)

    messages: ClassVar[Dict[str, str]] = {
        "name": "I need a name to create the commission.",
    }
    invalid_prefix: ClassVar[str] = "I couldn't create the commission. Problem: "
    failure_reply: ClassVar[str] = "Sorry, I encountered a database error while creating the commission."


class CreateMeetingParams(IntentParams):
    commission_name_or_id: str
    title: str = Field(max_length=255)
    date: str
    location: str = Field(max_length=255)
    gps: Optional[str] = Field(default=None, max_length=100)

    messages: ClassVar[Dict[str, str]] = {
        "commission_name_or_id": "Which commission is this meeting for? Please provide the name or ID.",
        "title": "What is the title of the meeting?",
        "date": "When is the meeting? Please provide a date and time.",
        "location": "Where will the meeting take place?",
        "gps.value_error": 'GPS coordinates should be in the format "latitude,longitude" (e.g., 40.7128,-74.0060).',
    }
    invalid_prefix: ClassVar[str] = "I couldn't schedule the meeting. Problem: "
    failure_reply: ClassVar[str] = "Sorry, I encountered a database error while scheduling the meeting."

    @field_validator("gps")
    @classmethod
    def check_gps_format(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not _GPS_PATTERN.match(value):
            raise ValueError(
                'GPS coordinates should be in the format "latitude,longitude" (e.g., 40.7128,-74.0060).'
            )
        return value


class AddMemberParams(IntentParams):
    commission_name_or_id: str
    user_name_or_email: str

    messages: ClassVar[Dict[str, str]] = {
        "commission_name_or_id": "Which commission are we modifying?",
        "user_name_or_email": "Which user do you want to add?",
    }
    failure_reply: ClassVar[str] = "Sorry, I encountered a database error while managing the commission member."


class RemoveMemberParams(AddMemberParams):
    messages: ClassVar[Dict[str, str]] = {
        "commission_name_or_id": "Which commission are we modifying?",
        "user_name_or_email": "Which user do you want to remove?",
    }


class SuggestDetailsParams(IntentParams):
    item_type: Optional[str] = None
    context: str = ""

    failure_reply: ClassVar[str] = "Sorry, I couldn't put together suggestions right now."

    @field_validator("item_type")
    @classmethod
    def lower_item_type(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value


class GeneratePvTextParams(IntentParams):
    pv_id: int = Field(ge=1)

    messages: ClassVar[Dict[str, str]] = {
        "pv_id": "Which PV do you want the text for? Please provide the PV ID number.",
        "pv_id.int_parsing": "The PV ID needs to be a number.",
        "pv_id.int_type": "The PV ID needs to be a number.",
        "pv_id.int_from_float": "The PV ID needs to be a number.",
        "pv_id.greater_than_equal": "The PV ID needs to be a valid number.",
    }
    failure_reply: ClassVar[str] = (
        "Sorry, an unexpected error occurred while preparing the PV text download link."
    )
