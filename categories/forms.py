from django import forms
import logging

from services.validation import validate_category_name, validate_color

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#DBEAFE"  # muted blue


class CategoryForm(forms.Form):
    """
    Create / rename a category.

    Duplicate names are rejected case-insensitively against ``existing_names``;
    when editing, pass the category's current name as ``current_name`` so it
    doesn't collide with itself. The database unique index still has the last
    word (see ``services.category_api``).
    """

    name = forms.CharField(
        label="Category Name",
        required=False,
        widget=forms.TextInput(attrs={
            'class': 'form-control',
            'placeholder': 'Enter category name',
        })
    )

    color = forms.CharField(
        label="Color",
        required=False,
        initial=DEFAULT_COLOR,
        widget=forms.TextInput(attrs={
            'class': 'form-control',
            'type': 'color',
        })
    )

    def __init__(self, *args, **kwargs):
        self.existing_names = kwargs.pop('existing_names', [])
        self.current_name = kwargs.pop('current_name', None)
        super().__init__(*args, **kwargs)

    def clean_name(self):
        name = self.cleaned_data.get('name', '')
        validate_category_name(name, existing_names=self.existing_names, exclude=self.current_name)
        return name.strip()

    def clean_color(self):
        color = self.cleaned_data.get('color', '')
        validate_color(color)
        return color.upper()
