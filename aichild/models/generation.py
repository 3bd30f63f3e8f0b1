"""
Generation request. camelCase on the wire, snake_case in Python.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class GenerationRequest(BaseModel):
    """Everything is optional. Missing fields fall back to defaults in the prompt builder."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: Optional[str] = Field(default=None, alias="userId")
    child_key: Optional[str] = Field(default=None, alias="childKey")

    gender: Optional[str] = None
    age: Optional[str] = None
    positive_prompt: Optional[str] = Field(default=None, alias="positivePrompt")
    negative_prompt: Optional[str] = Field(default=None, alias="negativePrompt")
    expression: Optional[str] = None
    clothing: Optional[str] = None
    dress_code: Optional[str] = Field(default=None, alias="dressCode")

    # Sent as booleans or as "true"/"false" strings by the mobile client
    remove_facial_hair: Optional[Union[bool, str]] = Field(default=None, alias="removeFacialHair")
    facial_hair_removal: Optional[str] = Field(default=None, alias="facialHairRemoval")
    child_safety: Optional[str] = Field(default=None, alias="childSafety")
    safety_level: Optional[int] = Field(default=None, ge=1, le=6, alias="safetyLevel")

    use_parent_images: bool = Field(default=True, alias="useParentImages")

    @property
    def wants_facial_hair_removed(self) -> bool:
        value = self.remove_facial_hair
        if value is None:
            return True
        if isinstance(value, str):
            return value.strip().lower() != "false"
        return bool(value)
