from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request bodies arrive in camelCase from the web frontend"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _stringify_id(value):
    # Ids and codes may be sent as JSON numbers
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _usable_salary(value):
    # Only a range object or free text can be shown; anything else drops the salary line
    if isinstance(value, (dict, str, BaseModel)):
        return value
    return None


class Salary(CamelModel):
    min: Optional[float] = None
    max: Optional[float] = None
    currency: Optional[str] = None


class AlertJob(CamelModel):
    title: str = Field(..., min_length=1)
    company: str = Field(..., min_length=1)
    apply_link: str = Field(..., min_length=1)
    location: Optional[str] = None
    employment_type: Optional[str] = None
    salary: Optional[Union[Salary, str]] = None
    is_remote: bool = False
    description: Optional[str] = None

    @field_validator("salary", mode="before")
    @classmethod
    def salary_or_none(cls, v):
        return _usable_salary(v)

    @field_validator("is_remote", mode="before")
    @classmethod
    def null_is_not_remote(cls, v):
        return False if v is None else v


class JobAlertRequest(CamelModel):
    user_email: str = Field(..., min_length=1)
    alert_title: str = Field(..., min_length=1)
    jobs: list[AlertJob] = Field(..., min_length=1)
    user_name: Optional[str] = None


class JobApplicationRequest(CamelModel):
    recruiter_email: str = Field(..., min_length=1)
    job_title: str = Field(..., min_length=1)
    applicant_name: str = Field(..., min_length=1)
    applicant_email: str = Field(..., min_length=1)
    recruiter_name: Optional[str] = None
    company_name: Optional[str] = None
    applicant_phone: Optional[str] = None
    resume_url: Optional[str] = None
    message: Optional[str] = None


class MatchingJobRequest(CamelModel):
    user_email: str = Field(..., min_length=1)
    job_title: str = Field(..., min_length=1)
    company_name: str = Field(..., min_length=1)
    apply_link: str = Field(..., min_length=1)
    user_name: Optional[str] = None
    job_description: Optional[str] = None
    job_location: Optional[str] = None
    job_type: Optional[str] = None
    salary: Optional[Union[Salary, str]] = None
    posted_date: Optional[str] = None

    @field_validator("salary", mode="before")
    @classmethod
    def salary_or_none(cls, v):
        return _usable_salary(v)


class ProposalApprovalRequest(CamelModel):
    student_email: str = Field(..., min_length=1)
    challenge_title: str = Field(..., min_length=1)
    company_name: str = Field(..., min_length=1)
    proposed_price: float = Field(..., gt=0)
    estimated_days: int = Field(..., gt=0)
    student_name: Optional[str] = None
    corporate_name: Optional[str] = None
    feedback: Optional[str] = None
    chat_room_id: Optional[str] = None
    frontend_url: Optional[str] = None

    @field_validator("chat_room_id", mode="before")
    @classmethod
    def chat_room_id_as_string(cls, v):
        return _stringify_id(v)


class VerificationCodeRequest(CamelModel):
    email: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)

    @field_validator("code", mode="before")
    @classmethod
    def code_as_string(cls, v):
        return _stringify_id(v)


class SendEmailResponse(BaseModel):
    success: bool
    messageId: str


class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: str
    endpoints: list[str]
