"""
treinai/schemas/account.py

Purpose: Request bodies for accounts, profile and billing
"""

from pydantic import BaseModel, Field


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=80)
    email: str
    password: str
    plan: str = Field(..., description="free | pro | max | coach")

    class Config:
        json_schema_extra = {
            "example": {
                "username": "ana",
                "email": "ana@example.com",
                "password": "Treino2024",
                "plan": "free"
            }
        }


class LoginRequest(BaseModel):
    email: str
    password: str


class ThemeRequest(BaseModel):
    theme: str


class OnboardingRequest(BaseModel):
    answers: str = Field(..., min_length=1, description="Free-text answers to the onboarding questions")


class CheckoutRequest(BaseModel):
    plan: str


class PlanChangeRequest(BaseModel):
    plan: str
    password: str


class ImpressionsRequest(BaseModel):
    amount_cents: int = Field(..., description="Amount in cents (BRL)")
