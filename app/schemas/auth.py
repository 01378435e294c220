from pydantic import BaseModel, ConfigDict, Field

class SendOtpRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone: str = Field(min_length=1)
    consent_given: bool = Field(default=False, alias="consentGiven")


class VerifyOtpRequest(BaseModel):
    phone: str = Field(min_length=1)
    otp: str = Field(min_length=1)


class LoginRequest(BaseModel):
    phone: str


class UpdateProfileRequest(BaseModel):
    phone: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=128)
    age: int


class AcceptTermsRequest(BaseModel):
    phone: str = Field(min_length=1)
    accepted: bool = False


class OptInRequest(BaseModel):
    phone: str
