"""
Review (testimonial) domain model

Testimonials are shown on the home and B2B pages. They are managed
locally and never sent to the remote API. Product reviews live on the
product itself (see ``ProductReview``).
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from enum import Enum


class ReviewPage(str, Enum):
    HOME = "home"
    B2B = "b2b"


class Review(BaseModel):
    """A testimonial shown on a landing page"""
    id: int = Field(..., description="Review ID")
    name: str = Field(..., description="Author name")
    role: str = Field("Customer", description="Author role or company")
    content: str = Field(..., description="Testimonial text")
    image: Optional[str] = Field(None, description="Author photo URL")
    page: ReviewPage = Field(ReviewPage.HOME, description="Page the review is shown on")
    rating: Optional[int] = Field(None, description="Star rating", ge=1, le=5)

    model_config = ConfigDict(extra="allow")


class ReviewCreate(BaseModel):
    """A testimonial before an ID is assigned"""
    name: str
    role: str = "Customer"
    content: str
    image: Optional[str] = None
    page: ReviewPage = ReviewPage.HOME
    rating: Optional[int] = Field(None, ge=1, le=5)
