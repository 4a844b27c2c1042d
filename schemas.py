"""
Pydantic models for course module documents.

Attributes are snake_case in Python; documents are serialized with camelCase
aliases (moduleId, totalSubmodules, videoLink, ...) so the stored and returned
JSON keeps the shape consumers of the course API expect.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


NO_CONTENT = "No content available"
NO_EXAMPLE = "No example provided"
NO_IMAGE = "No image provided"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Section(CamelModel):
    """
    Leaf content unit, one per qualifying spreadsheet row.

    Attributes:
        title: Section title
        content: Section body text
        video_link: Link to the section video, empty when absent
        example: Worked example text
        image: Image reference
        time: Duration in minutes, stored under the "Time" key
    """
    title: str
    content: str = NO_CONTENT
    video_link: str = ""
    example: str = NO_EXAMPLE
    image: str = NO_IMAGE
    time: int = Field(default=0, alias="Time")


class Submodule(CamelModel):
    """Named group of sections; totals are kept in step with `sections`."""
    title: str
    sections: List[Section] = Field(default_factory=list)
    total_sections: int = 0
    total_time: int = 0


class Module(CamelModel):
    """
    Top-level course document, the unit of persistence.

    Attributes:
        module_id: Slug derived from the title, used as the storage key
        title: Course title
        description: Course description
        banner_image: Opaque banner image reference
        submodules: Submodules in first-encounter order
        total_submodules: Number of submodules
        total_time: Sum of all section durations
        id: Primary key assigned by the store, None until persisted
    """
    module_id: str
    title: str
    description: str
    banner_image: str
    submodules: List[Submodule] = Field(default_factory=list)
    total_submodules: int = 0
    total_time: int = 0
    id: Optional[int] = None


class SectionRow(BaseModel):
    """A decoded row that carries both mandatory titles, normalized for aggregation."""
    submodule_title: str
    section_title: str
    content: Optional[str] = None
    video_link: Optional[str] = None
    example: Optional[str] = None
    image: Optional[str] = None
    duration: int = 0


class SubmitCourseRequest(BaseModel):
    """
    Input of the "submit course" operation.

    Attributes:
        file_content: Raw spreadsheet bytes
        filename: Name of the uploaded file, for logging only
        title: Course title
        description: Course description
        banner_image: Banner image reference
    """
    file_content: Optional[bytes] = None
    filename: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    banner_image: Optional[str] = None


class SubmissionSummary(CamelModel):
    title: str
    total_submodules: int
    total_time: int


class CourseSummary(CamelModel):
    """One entry of the course listing."""
    title: str
    id: int
    module_id: str
    description: str
    chapters: int
    time: int
    image: str
