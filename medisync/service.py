"""
This module provides the application state and business logic for MediSync.

It defines the `MediSyncService` class, the single owned state object of a browser
session. It is responsible for:
- Demo authentication (login, signup, logout) against the mock accounts.
- Profile and vitals updates for the current user.
- The medication list and the dose log: adding medications, taking and skipping doses,
  refills and doctor prescriptions.
- The pharmacy cart and checkout.
- Giving the GUI access to the shared `ChatService`, the `MedicalAssistant` and the
  session's `ReminderScheduler`.

Rejected operations (unknown ids, failed logins) return None or False rather than raising.
"""
# medisync/service.py

from datetime import date, datetime
import random

from medisync import mock_data
from medisync.adherence import ReminderScheduler
from medisync.chat import ChatService
from medisync.config import REFILL_AMOUNT, STARTER_STOCK
from medisync.gemini import MedicalAssistant, OfflineAssistant
from medisync.models import (
    User, PatientDetails, Vitals, Medication, DoseLog, CartItem, new_id,
    ROLE_PATIENT, ROLE_DOCTOR, MED_ACTIVE, DOSE_TAKEN, DOSE_SKIPPED,
)
from medisync.pharmacy import medication_to_cart_item


class MediSyncService:
    """Holds one session's users, medications, dose logs and cart."""

    def __init__(self, chat: ChatService, assistant: MedicalAssistant = None, today=None):
        """Initializes the session state from the seed data.

        Args:
            chat: The chat store shared by all sessions.
            assistant: The AI gateway; defaults to the offline assistant.
            today: Callable returning today's date, overridable in tests.
        """
        self.chat = chat
        self.assistant = assistant or OfflineAssistant()
        self.reminders = ReminderScheduler()
        self._today = today or date.today
        self.current_user = None
        self.products = mock_data.mock_products()
        self.cart = []
        self._load_patient_records(mock_data.PATIENT_ID)

    def _load_patient_records(self, patient_id):
        """Loads the seed records when `patient_id` is the demo patient, empty records otherwise."""
        self.records_patient_id = patient_id
        if patient_id == mock_data.PATIENT_ID:
            self.medications = mock_data.initial_medications()
            self.logs = mock_data.initial_logs(self._today())
        else:
            self.medications = []
            self.logs = []

    def today(self):
        """The session's current date, the day dose logs are written against."""
        return self._today()

    # Authentication
    def login(self, email, role):
        """Signs in with one of the demo accounts.

        A patient email that does not match the demo patient starts a new, empty patient
        session. Doctors must use the demo doctor's email.

        Args:
            email (str): The login email, compared case-insensitively.
            role (str): 'patient' or 'doctor'.

        Returns:
            User or None: The signed-in user, or None if the credentials are rejected.
        """
        email = (email or "").strip()
        if not email:
            return None

        if role == ROLE_PATIENT:
            if email.lower() == mock_data.PATIENT_EMAIL:
                user = mock_data.mock_patient()
            else:
                name = email.split('@')[0]
                user = User(
                    id=new_id(),
                    name=name,
                    email=email,
                    role=ROLE_PATIENT,
                    avatar=f"https://ui-avatars.com/api/?name={name}&background=random",
                    details=PatientDetails(weight=0),
                )
            self._load_patient_records(user.id)
        elif role == ROLE_DOCTOR:
            if email.lower() != mock_data.DOCTOR_EMAIL:
                return None
            user = mock_data.mock_doctor()
            # The doctor's roster is the demo patient, whose records must be the loaded ones.
            if self.records_patient_id != mock_data.PATIENT_ID:
                self._load_patient_records(mock_data.PATIENT_ID)
        else:
            return None

        self.current_user = user
        return user

    def signup(self, name, email):
        """Creates a new patient account and signs it in.

        Returns:
            User or None: The new user, or None if a field is missing.
        """
        name = (name or "").strip()
        email = (email or "").strip()
        if not name or not email:
            return None
        user = User(
            id=new_id(),
            name=name,
            email=email,
            role=ROLE_PATIENT,
            avatar=f"https://ui-avatars.com/api/?name={name}&background=0D9488&color=fff",
            details=PatientDetails(),
        )
        self._load_patient_records(user.id)
        self.current_user = user
        return user

    def logout(self):
        """Clears the signed-in user, the cart and the reminder guard."""
        self.current_user = None
        self.cart = []
        self.reminders.reset()

    # Profile
    def update_user(self, user):
        self.current_user = user

    def update_profile(self, name, weight=None, conditions="", allergies=""):
        """Applies the profile form to the current user.

        Args:
            name (str): The new display name.
            weight (str | float | None): Weight in kg; blank clears it. Patients only.
            conditions (str): Comma-separated conditions. Patients only.
            allergies (str): Comma-separated allergies. Patients only.

        Returns:
            bool: True if a user was signed in and updated.

        Raises:
            ValueError: If `weight` is not a number; nothing is changed.
        """
        user = self.current_user
        if user is None:
            return False
        # Validate before any field changes.
        parsed_weight = float(weight) if user.is_patient and weight not in (None, "") else None
        if name and name.strip():
            user.name = name.strip()
        if user.is_patient:
            details = user.details or PatientDetails()
            details.weight = parsed_weight
            details.conditions = _split_list(conditions)
            details.allergies = _split_list(allergies)
            user.details = details
        return True

    def update_vitals(self, vitals):
        """Stores a new vitals reading on the current patient, stamped with the current time."""
        user = self.current_user
        if user is None or not user.is_patient:
            return False
        vitals.last_updated = datetime.now().isoformat()
        if user.details is None:
            user.details = PatientDetails()
        user.details.vitals = vitals
        return True

    @staticmethod
    def simulate_vitals(rng=None):
        """Produces a plausible resting reading for the 'AI Quick Measure' button."""
        rng = rng or random.Random()
        return Vitals(
            heart_rate=rng.randint(65, 84),
            systolic_bp=rng.randint(110, 129),
            diastolic_bp=rng.randint(70, 84),
            blood_glucose=rng.randint(90, 109),
            oxygen_saturation=rng.randint(97, 99),
            temperature=36.6,
        )

    # Medications and doses
    def get_medication(self, medication_id):
        for med in self.medications:
            if med.id == medication_id:
                return med
        return None

    def build_medication(self, name, dosage, frequency, times, instructions, prescribed_by, stock=STARTER_STOCK):
        """Creates an active medication starting today.

        Args:
            times (list[str] | str): Intake times; a comma-separated string is split.
        """
        if isinstance(times, str):
            times = [t.strip() for t in times.split(',') if t.strip()]
        return Medication(
            name=name.strip(),
            dosage=dosage.strip(),
            frequency=frequency,
            times=times,
            instructions=instructions.strip(),
            start_date=self._today().isoformat(),
            status=MED_ACTIVE,
            stock=stock,
            prescribed_by=prescribed_by,
        )

    def add_medication(self, medication):
        self.medications.append(medication)
        return medication

    def _log_dose(self, medication_id, time, status, now):
        now = now or datetime.now()
        log = DoseLog(
            medication_id=medication_id,
            scheduled_time=f"{self._today().isoformat()}T{time}:00",
            taken_time=now.isoformat() if status == DOSE_TAKEN else None,
            status=status,
        )
        self.logs.append(log)
        return log

    def take_dose(self, medication_id, time, now=None):
        """Logs a dose as taken and decrements the medication's stock, never below zero.

        Args:
            medication_id (str): The medication taken.
            time (str): The scheduled slot, 'HH:MM'.
            now (datetime, optional): The intake time.

        Returns:
            DoseLog or None: The appended log, or None for an unknown medication.
        """
        med = self.get_medication(medication_id)
        if med is None:
            return None
        log = self._log_dose(medication_id, time, DOSE_TAKEN, now)
        med.stock = max(0, med.stock - 1)
        return log

    def skip_dose(self, medication_id, time, now=None):
        """Logs a dose as skipped. Stock is unchanged."""
        if self.get_medication(medication_id) is None:
            return None
        return self._log_dose(medication_id, time, DOSE_SKIPPED, now)

    def refill_medication(self, medication_id, amount=REFILL_AMOUNT):
        """Adds `amount` units to one medication's stock.

        Returns:
            bool: True if the medication exists.
        """
        med = self.get_medication(medication_id)
        if med is None:
            return False
        med.stock += amount
        return True

    def request_refill(self, medication_id):
        """Puts a refill of the medication in the cart."""
        med = self.get_medication(medication_id)
        if med is None:
            return None
        return self.add_to_cart(med)

    # Doctor
    def patients_for(self, doctor):
        """Returns the doctor's roster as patient users."""
        roster = []
        for patient_id in getattr(doctor.details, 'patients', []):
            if patient_id == mock_data.PATIENT_ID:
                roster.append(mock_data.mock_patient())
        return roster

    def prescribe(self, medication, patient_id):
        """Adds a doctor's prescription to the patient's medication list.

        Only the patient whose records are loaded in this session can receive it.

        Returns:
            bool: True if the prescription was applied.
        """
        if patient_id != self.records_patient_id:
            return False
        self.medications.append(medication)
        return True

    # Cart
    def _find_cart_item(self, item_id):
        for item in self.cart:
            if item.id == item_id:
                return item
        return None

    def add_to_cart(self, item, quantity=1):
        """Adds a product or a medication refill to the cart, merging with an existing line.

        Returns:
            CartItem: The cart line holding the item.
        """
        existing = self._find_cart_item(item.id)
        if existing is not None:
            existing.quantity += quantity
            return existing
        if isinstance(item, Medication):
            line = medication_to_cart_item(item, quantity)
        else:
            line = CartItem.from_product(item, quantity)
        self.cart.append(line)
        return line

    def update_cart_quantity(self, item_id, delta):
        """Changes a line's quantity by `delta`, keeping it at one or more."""
        item = self._find_cart_item(item_id)
        if item is None:
            return False
        item.quantity = max(1, item.quantity + delta)
        return True

    def remove_from_cart(self, item_id):
        before = len(self.cart)
        self.cart = [item for item in self.cart if item.id != item_id]
        return len(self.cart) != before

    def clear_cart(self):
        self.cart = []

    @property
    def cart_total(self):
        return sum(item.line_total for item in self.cart)

    @property
    def cart_count(self):
        return sum(item.quantity for item in self.cart)

    def checkout(self):
        """Places the order: refills prescription lines, reduces catalog stock and empties the cart.

        Returns:
            dict or None: An order summary, or None if the cart was empty.
        """
        if not self.cart:
            return None
        order = {
            "order_id": new_id(),
            "items": [(item.name, item.quantity) for item in self.cart],
            "total": round(self.cart_total, 2),
            "placed_at": datetime.now().isoformat(),
        }
        products = {p.id: p for p in self.products}
        for item in self.cart:
            if item.medication_id:
                self.refill_medication(item.medication_id, REFILL_AMOUNT * item.quantity)
            elif item.id in products:
                product = products[item.id]
                product.stock = max(0, product.stock - item.quantity)
        self.clear_cart()
        return order


def _split_list(value):
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = (value or "").split(',')
    return [s.strip() for s in items if s and s.strip()]
