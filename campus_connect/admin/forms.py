from __future__ import annotations

from wtforms import StringField
from wtforms.validators import DataRequired, Length, URL, ValidationError

from ..models import Category
from ..validation import IsoDateTimeField, JsonForm, TagListField, strip_text


class EventForm(JsonForm):
    title = StringField(
        "Title",
        filters=[strip_text],
        validators=[Length(min=3, message="Title must be at least 3 characters"), Length(max=200)],
    )
    description = StringField(
        "Description",
        filters=[strip_text],
        validators=[Length(min=10, message="Description must be at least 10 characters")],
    )
    date = IsoDateTimeField("Date")
    time = StringField("Time", filters=[strip_text], validators=[DataRequired("Time is required"), Length(max=40)])
    location = StringField(
        "Location",
        filters=[strip_text],
        validators=[Length(min=3, message="Location must be at least 3 characters"), Length(max=200)],
    )
    imageUrl = StringField(
        "Image URL",
        filters=[strip_text],
        validators=[DataRequired("Please enter a valid URL"), URL(message="Please enter a valid URL"), Length(max=500)],
    )
    categories = TagListField("Categories")

    def validate_date(self, field):
        if field.data is None and not field.process_errors:
            raise ValidationError("Date is required")

    def validate_categories(self, field):
        if not field.data:
            raise ValidationError("At least one category is required")
        known = {
            value
            for (value,) in Category.query.with_entities(Category.value)
            .filter(Category.type == "event", Category.value.in_(field.data))
            .all()
        }
        unknown = [value for value in field.data if value not in known]
        if unknown:
            raise ValidationError(f"Unknown category: {', '.join(unknown)}")

    def event_fields(self) -> dict:
        return {
            "title": self.title.data,
            "description": self.description.data,
            "date": self.date.data,
            "time": self.time.data,
            "location": self.location.data,
            "image_url": self.imageUrl.data,
        }


class ClubForm(JsonForm):
    name = StringField(
        "Name",
        filters=[strip_text],
        validators=[Length(min=3, message="Name must be at least 3 characters"), Length(max=120)],
    )
    description = StringField(
        "Description",
        filters=[strip_text],
        validators=[Length(min=10, message="Description must be at least 10 characters")],
    )
    category = StringField(
        "Category",
        filters=[strip_text],
        validators=[DataRequired("Category is required"), Length(max=80)],
    )

    def club_fields(self) -> dict:
        return {
            "name": self.name.data,
            "description": self.description.data,
            "category": self.category.data,
        }
