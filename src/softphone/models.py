import time
from dataclasses import dataclass, field

from softphone.states import ActionTaken, CallDirection, CallStatus


@dataclass(frozen=True)
class Call:
    id: str
    direction: CallDirection
    from_number: str
    to_number: str
    status: CallStatus
    start_time: float
    end_time: float | None = None
    duration: int = 0
    notes: str = ""
    summary: str = ""
    agent_id: str | None = None
    lead_id: str | None = None
    action_taken: ActionTaken = ActionTaken.CALL

    @property
    def counterpart(self) -> str:
        """The number on the other end of the line from the agent."""
        if self.direction == CallDirection.INCOMING:
            return self.from_number
        return self.to_number

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "direction": self.direction.value,
            "from": self.from_number,
            "to": self.to_number,
            "status": self.status.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "notes": self.notes,
            "summary": self.summary,
            "agent_id": self.agent_id,
            "lead_id": self.lead_id,
            "action_taken": self.action_taken.value,
        }


@dataclass(frozen=True)
class Agent:
    id: str
    name: str
    email: str = ""
    phone: str = ""
    status: str = "active"
    role: str = "agent"
    score: float | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Agent":
        agent_id = data.get("id", data.get("agent_id", ""))
        return cls(
            id=str(agent_id),
            name=data.get("name") or "",
            email=data.get("email") or "",
            phone=data.get("phone") or "",
            status=data.get("status") or "active",
            role=data.get("role") or "agent",
            score=data.get("score"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "status": self.status,
            "role": self.role,
            "score": self.score,
        }


# Backend (camelCase) key -> Lead attribute
LEAD_FIELDS = {
    "lead_id": "lead_id",
    "company": "company",
    "website": "website",
    "industry": "industry",
    "employees": "employees",
    "revenue": "revenue",
    "yearFounded": "year_founded",
    "productCategory": "product_category",
    "businessType": "business_type",
    "bbbRating": "bbb_rating",
    "street": "street",
    "city": "city",
    "state": "state",
    "companyPhone": "company_phone",
    "companyLinkedin": "company_linkedin",
}


@dataclass(frozen=True)
class Lead:
    lead_id: str
    company: str = ""
    website: str = ""
    industry: str = ""
    employees: str = ""
    revenue: str = ""
    year_founded: str = ""
    product_category: str = ""
    business_type: str = ""
    bbb_rating: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    company_phone: str = ""
    company_linkedin: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Lead":
        values = {}
        for key, attr in LEAD_FIELDS.items():
            raw = data.get(key, data.get(attr))
            if raw is not None:
                values[attr] = str(raw)
        values.setdefault("lead_id", "")
        return cls(**values)

    def to_dict(self) -> dict:
        return {key: getattr(self, attr) for key, attr in LEAD_FIELDS.items()}


@dataclass(frozen=True)
class Notification:
    title: str
    description: str = ""
    variant: str = "default"
    timestamp: float = field(default_factory=time.time)

    @property
    def is_error(self) -> bool:
        return self.variant == "destructive"

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "variant": self.variant,
            "timestamp": self.timestamp,
        }
