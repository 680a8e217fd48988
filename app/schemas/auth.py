"""인증 관련 Pydantic 요청/응답 스키마 정의.

Authentication-related Pydantic request/response schema definitions.
Covers registration, login and current user info. Credentials travel in
cookies, so no response schema carries tokens.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

_USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9._]+$")
_SYMBOL_PATTERN = re.compile(r"[`~!@#$%^&*()\-_=+{}\[\]|\\;:'\",<.>/?]")


class RegisterRequest(BaseModel):
    """회원가입 요청 스키마.

    Registration request schema. Field names follow the web client
    (``confirmPassword``, ``displayName``). Uniqueness of username and
    display name is checked by the service, not here.

    Attributes:
        username: 로그인 아이디 (1-20자, 영문/숫자/./_)
        password: 비밀번호 (6-50자, 대/소문자·숫자·기호 각 1개 이상)
        confirm_password: 비밀번호 확인 (Must equal password)
        display_name: 표시 이름 (1-20자)
    """

    model_config = ConfigDict(populate_by_name=True)

    username: str
    password: str
    confirm_password: str = Field(alias="confirmPassword")
    display_name: str = Field(alias="displayName")

    @field_validator("username")
    @classmethod
    def validate_username(cls, value: str) -> str:
        value = value.strip()
        if not 1 <= len(value) <= 20:
            raise ValueError("Username must be between 1 and 20 characters long.")
        if not _USERNAME_PATTERN.match(value):
            raise ValueError("Username must only contain letters of the alphabet, numbers, '.' and/or '_'.")
        return value

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        value = value.strip()
        if not 6 <= len(value) <= 50:
            raise ValueError("Password must contain between 6 and 50 characters.")
        if (
            not re.search(r"[a-z]", value)
            or not re.search(r"[A-Z]", value)
            or not re.search(r"[0-9]", value)
            or not _SYMBOL_PATTERN.search(value)
        ):
            raise ValueError(
                "Password must contain at least: 1 uppercase letter, 1 lowercase letter, 1 number and 1 symbol."
            )
        return value

    @field_validator("confirm_password")
    @classmethod
    def validate_confirm_password(cls, value: str, info: ValidationInfo) -> str:
        value = value.strip()
        # password 검증이 실패했으면 비교 생략 — skip when password already failed
        password: str | None = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("Passwords must match.")
        return value

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, value: str) -> str:
        value = value.strip()
        if not 1 <= len(value) <= 20:
            raise ValueError("Display name must be between 1 and 20 characters long.")
        return value


class LoginRequest(BaseModel):
    """로그인 요청 스키마.

    Login request schema. Both fields default to empty so a missing field
    fails the same way as a wrong password (400 ``{"status": 400}``).
    """

    username: str = ""
    password: str = ""


class UserMeResponse(BaseModel):
    """현재 사용자 정보 응답 스키마 (GET /me)."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    username: str
    display_name: str | None = Field(default=None, serialization_alias="displayName")
