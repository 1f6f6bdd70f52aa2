from django import forms
from django.core.exceptions import ValidationError
from decimal import Decimal
import logging

from services.formatting import normalize_amount_string
from services.validation import (
    validate_amount,
    validate_category,
    validate_date,
    validate_title,
)

logger = logging.getLogger(__name__)


class ExpenseForm(forms.Form):
    """
    New / edit expense form.

    Every field is validated by the shared validators in ``services.validation``
    so the messages match the ones returned by the blur endpoint. Fields are
    declared ``required=False`` because "required" is one of those validators.
    """

    title = forms.CharField(
        required=False,
        strip=False,
        widget=forms.TextInput(attrs={
            'class': 'form-control',
            'placeholder': 'Enter expense title',
            'data-validate': 'title',
        })
    )

    amount = forms.CharField(
        required=False,
        widget=forms.TextInput(attrs={
            'class': 'form-control',
            'placeholder': '0.00',
            'inputmode': 'decimal',
            'data-validate': 'amount',
        })
    )

    date = forms.CharField(
        required=False,
        widget=forms.DateInput(attrs={
            'class': 'form-control',
            'type': 'date',
            'data-validate': 'date',
        })
    )

    category = forms.ChoiceField(
        required=False,
        choices=[],  # Will be populated in __init__
        widget=forms.Select(attrs={
            'class': 'form-select',
            'data-validate': 'category',
        })
    )

    note = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={
            'class': 'form-control',
            'placeholder': 'Add any additional notes...',
            'rows': 3
        })
    )

    def __init__(self, *args, **kwargs):
        # Categories come from the CategoryStore: list of {'id', 'name', ...}
        self.categories = kwargs.pop('categories', [])
        # Lets tests pin "today" for the future-date check
        self.today = kwargs.pop('today', None)
        # Category of the expense being edited; stays valid even if it was renamed since
        self.current_category = kwargs.pop('current_category', None)
        super().__init__(*args, **kwargs)

        choices = [('', 'Select a category')]
        choices += [(c['name'], c['name']) for c in self.categories]
        current = self.current_category or self.initial.get('category')
        if current and current not in [c['name'] for c in self.categories]:
            choices.append((current, current))
        self.fields['category'].choices = choices

    def clean_title(self):
        title = self.cleaned_data.get('title', '')
        validate_title(title)
        return title.strip()

    def clean_amount(self):
        amount = self.cleaned_data.get('amount', '')
        validate_amount(amount)
        return Decimal(normalize_amount_string(amount))

    def clean_date(self):
        date_str = self.cleaned_data.get('date', '')
        validate_date(date_str, today=self.today)
        return date_str.strip()

    def clean_category(self):
        category = self.cleaned_data.get('category', '')
        validate_category(category)
        return category

    def clean_note(self):
        return self.cleaned_data.get('note', '').strip() or None

    def to_payload(self):
        """Cleaned data in the shape the expense API expects."""
        data = dict(self.cleaned_data)
        match = next((c for c in self.categories if c['name'] == data['category']), None)
        if match is not None:
            data['category_id'] = match.get('id')
        return data

    @classmethod
    def initial_from_expense(cls, expense):
        return {
            'title': expense['title'],
            'amount': f"{expense['amount']:.2f}",
            'date': expense['date'],
            'category': expense['category'],
            'note': expense.get('note') or '',
        }

    def add_submit_error(self, message):
        """Attach a data-layer failure as a non-field error."""
        logger.warning(f"Expense submission failed: {message}")
        self.add_error(None, ValidationError(message, code='submit'))
