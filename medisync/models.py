"""
This module defines the primary data models for the MediSync application.

These classes structure the data held in the per-session application state
(`MediSyncService`) and in the chat history store. Roles and statuses are plain
lowercase strings, listed in the constant tuples below.
"""
# medisync/models.py

from datetime import datetime
import uuid

ROLE_PATIENT = 'patient'
ROLE_DOCTOR = 'doctor'
ROLE_PHARMACY = 'pharmacy'
ROLES = (ROLE_PATIENT, ROLE_DOCTOR, ROLE_PHARMACY)

MED_ACTIVE = 'active'
MED_COMPLETED = 'completed'
MED_PAUSED = 'paused'
MED_STATUSES = (MED_ACTIVE, MED_COMPLETED, MED_PAUSED)

DOSE_PENDING = 'pending'
DOSE_TAKEN = 'taken'
DOSE_SKIPPED = 'skipped'
DOSE_LATE = 'late'
DOSE_STATUSES = (DOSE_PENDING, DOSE_TAKEN, DOSE_SKIPPED, DOSE_LATE)


def new_id() -> str:
    """Returns a fresh unique identifier for an entity."""
    return str(uuid.uuid4())


class Vitals:
    """A snapshot of a patient's vital signs.

    Attributes:
        heart_rate (int): Beats per minute.
        systolic_bp (int): Systolic blood pressure in mmHg.
        diastolic_bp (int): Diastolic blood pressure in mmHg.
        blood_glucose (int): Blood glucose in mg/dL.
        oxygen_saturation (int): SpO2 in percent.
        temperature (float): Body temperature in Celsius.
        last_updated (str): ISO timestamp of the reading.
    """
    def __init__(self, heart_rate=0, systolic_bp=0, diastolic_bp=0, blood_glucose=0,
                 oxygen_saturation=0, temperature=0.0, last_updated=None):
        self.heart_rate = heart_rate
        self.systolic_bp = systolic_bp
        self.diastolic_bp = diastolic_bp
        self.blood_glucose = blood_glucose
        self.oxygen_saturation = oxygen_saturation
        self.temperature = temperature
        self.last_updated = last_updated or datetime.now().isoformat()


class PatientDetails:
    """Clinical details attached to a patient account."""
    def __init__(self, dob='', allergies=None, conditions=None, weight=None, height=None, vitals=None):
        self.dob = dob
        self.allergies = list(allergies or [])
        self.conditions = list(conditions or [])
        self.weight = weight
        self.height = height
        self.vitals = vitals


class DoctorDetails:
    """Professional details attached to a doctor account."""
    def __init__(self, specialty, license_number, patients=None):
        self.specialty = specialty
        self.license_number = license_number
        self.patients = list(patients or [])


class User:
    """Represents a user in the system, who can be a patient, doctor, or pharmacy.

    Attributes:
        id (str): A unique identifier for the user.
        name (str): The display name.
        email (str): The login email.
        role (str): One of `ROLES`.
        avatar (str): URL of the avatar image.
        details (PatientDetails | DoctorDetails | None): Role-specific details.
    """
    def __init__(self, id, name, email, role, avatar=None, details=None):
        self.id = id
        self.name = name
        self.email = email
        self.role = role
        self.avatar = avatar
        self.details = details

    @property
    def is_patient(self):
        return self.role == ROLE_PATIENT

    @property
    def is_doctor(self):
        return self.role == ROLE_DOCTOR


class Medication:
    """A prescription tracked by a patient.

    Attributes:
        id (str): A unique identifier.
        name (str): Drug name.
        dosage (str): Dosage per intake, e.g. '10mg'.
        frequency (str): Human-readable frequency, e.g. '2x Daily'.
        times (list[str]): Scheduled intake times as 'HH:MM'.
        instructions (str): Free-text intake instructions.
        start_date (str): ISO date the course started.
        end_date (str | None): ISO date the course ends, if known.
        status (str): One of `MED_STATUSES`.
        stock (int): Remaining units. Never negative.
        prescribed_by (str | None): Doctor id, or 'AI-Scan' for scanned prescriptions.
    """
    def __init__(self, name, dosage, frequency, times, instructions, start_date,
                 status=MED_ACTIVE, stock=0, prescribed_by=None, end_date=None, id=None):
        self.id = id or new_id()
        self.name = name
        self.dosage = dosage
        self.frequency = frequency
        self.times = list(times)
        self.instructions = instructions
        self.start_date = start_date
        self.end_date = end_date
        self.status = status
        self.stock = max(0, int(stock))
        self.prescribed_by = prescribed_by

    @property
    def is_active(self):
        return self.status == MED_ACTIVE


class DoseLog:
    """One scheduled or completed administration of a medication.

    Attributes:
        id (str): A unique identifier.
        medication_id (str): The medication this dose belongs to.
        scheduled_time (str): Local ISO timestamp 'YYYY-MM-DDTHH:MM:SS'.
        taken_time (str | None): ISO timestamp of intake.
        status (str): One of `DOSE_STATUSES`.
        notes (str | None): Optional patient note.
    """
    def __init__(self, medication_id, scheduled_time, status, taken_time=None, notes=None, id=None):
        self.id = id or new_id()
        self.medication_id = medication_id
        self.scheduled_time = scheduled_time
        self.taken_time = taken_time
        self.status = status
        self.notes = notes


class StoredChatMessage:
    """A persisted doctor/patient chat message.

    Attributes:
        id (str): A unique identifier.
        sender_id (str): The sending user's id.
        receiver_id (str): The receiving user's id.
        sender_role (str): 'doctor' or 'patient'.
        text (str): The message body.
        timestamp (int): Epoch milliseconds.
    """
    def __init__(self, id, sender_id, receiver_id, sender_role, text, timestamp):
        self.id = id
        self.sender_id = sender_id
        self.receiver_id = receiver_id
        self.sender_role = sender_role
        self.text = text
        self.timestamp = timestamp

    def to_dict(self):
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data.get('id', ''),
            sender_id=data.get('sender_id', ''),
            receiver_id=data.get('receiver_id', ''),
            sender_role=data.get('sender_role', ROLE_PATIENT),
            text=data.get('text', ''),
            timestamp=int(data.get('timestamp', 0)),
        )

    def involves(self, user_a, user_b):
        """True if this message was exchanged between `user_a` and `user_b`, in either direction."""
        return ((self.sender_id == user_a and self.receiver_id == user_b) or
                (self.sender_id == user_b and self.receiver_id == user_a))


class Product:
    """A catalog entry in the pharmacy storefront."""
    def __init__(self, id, name, category, price, image, description, stock):
        self.id = id
        self.name = name
        self.category = category
        self.price = price
        self.image = image
        self.description = description
        self.stock = stock


class CartItem(Product):
    """A product line in the shopping cart.

    Attributes:
        quantity (int): Number of units, at least one.
        medication_id (str | None): Set when the line is a prescription refill.
    """
    def __init__(self, id, name, category, price, image, description, stock, quantity=1, medication_id=None):
        super().__init__(id, name, category, price, image, description, stock)
        self.quantity = max(1, int(quantity))
        self.medication_id = medication_id

    @property
    def line_total(self):
        return self.price * self.quantity

    @classmethod
    def from_product(cls, product, quantity=1):
        return cls(product.id, product.name, product.category, product.price,
                   product.image, product.description, product.stock, quantity=quantity)
