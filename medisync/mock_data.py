"""
Static seed records for the MediSync demo.

Every accessor returns fresh objects so that one session's edits (taking a dose,
editing a profile) never leak into the seed or into another session.
"""
# medisync/mock_data.py

from datetime import date, datetime, timedelta

from medisync.models import (
    User, PatientDetails, DoctorDetails, Medication, DoseLog, Product,
    ROLE_PATIENT, ROLE_DOCTOR, MED_ACTIVE, DOSE_TAKEN, DOSE_SKIPPED, DOSE_PENDING,
)

PATIENT_ID = 'p1'
DOCTOR_ID = 'd1'
PATIENT_EMAIL = 'sarah.j@example.com'
DOCTOR_EMAIL = 'dr.ray@medisync.com'

DAY_MS = 86400000


def mock_patient() -> User:
    return User(
        id=PATIENT_ID,
        name='Sarah Jenkins',
        email=PATIENT_EMAIL,
        role=ROLE_PATIENT,
        avatar='https://picsum.photos/200',
        details=PatientDetails(
            dob='1985-04-12',
            allergies=['Penicillin', 'Peanuts'],
            conditions=['Hypertension', 'Type 2 Diabetes'],
            weight=70,
        ),
    )


def mock_doctor() -> User:
    return User(
        id=DOCTOR_ID,
        name='Dr. Alistair Ray',
        email=DOCTOR_EMAIL,
        role=ROLE_DOCTOR,
        avatar='https://picsum.photos/201',
        details=DoctorDetails(
            specialty='Cardiology',
            license_number='CARD-NY-4421',
            patients=[PATIENT_ID],
        ),
    )


def initial_medications():
    return [
        Medication(
            id='m1',
            name='Lisinopril',
            dosage='10mg',
            frequency='Daily',
            times=['09:00'],
            instructions='Take with water. May cause dry cough.',
            start_date='2023-01-01',
            status=MED_ACTIVE,
            stock=4,  # low on purpose, triggers the refill banner
            prescribed_by=DOCTOR_ID,
        ),
        Medication(
            id='m2',
            name='Metformin',
            dosage='500mg',
            frequency='2x Daily',
            times=['08:00', '20:00'],
            instructions='Take with meals to reduce stomach upset.',
            start_date='2023-02-15',
            status=MED_ACTIVE,
            stock=45,
            prescribed_by=DOCTOR_ID,
        ),
    ]


def initial_logs(today: date = None):
    """Generates the last seven days of dose logs for the seed medications.

    Lisinopril was skipped yesterday and tonight's Metformin dose is still pending.
    """
    today = today or date.today()
    logs = []
    for i in range(7):
        date_str = (today - timedelta(days=i)).isoformat()

        logs.append(DoseLog(
            id=f'l-m1-{i}',
            medication_id='m1',
            scheduled_time=f'{date_str}T09:00:00',
            taken_time=None if i == 1 else f'{date_str}T09:15:00',
            status=DOSE_SKIPPED if i == 1 else DOSE_TAKEN,
        ))
        logs.append(DoseLog(
            id=f'l-m2-am-{i}',
            medication_id='m2',
            scheduled_time=f'{date_str}T08:00:00',
            taken_time=f'{date_str}T08:05:00',
            status=DOSE_TAKEN,
        ))
        logs.append(DoseLog(
            id=f'l-m2-pm-{i}',
            medication_id='m2',
            scheduled_time=f'{date_str}T20:00:00',
            taken_time=None if i == 0 else f'{date_str}T20:30:00',
            status=DOSE_PENDING if i == 0 else DOSE_TAKEN,
        ))
    return logs


def mock_products():
    return [
        Product('prod-1', 'Paracetamol 500mg', 'Pain Relief', 4.99,
                'https://images.unsplash.com/photo-1584308666744-24d5c474f2ae?w=200',
                'Fast relief from headaches, fever and mild pain. 24 tablets.', 120),
        Product('prod-2', 'Ibuprofen 200mg', 'Pain Relief', 6.49,
                'https://images.unsplash.com/photo-1550572017-edd951b55104?w=200',
                'Anti-inflammatory pain reliever for muscle aches and cramps.', 80),
        Product('prod-3', 'Vitamin D3 1000IU', 'Vitamins', 9.99,
                'https://images.unsplash.com/photo-1584017911766-d451b3d0e843?w=200',
                'Supports bone health and immune function. 90 softgels.', 60),
        Product('prod-4', 'Omega-3 Fish Oil', 'Vitamins', 14.50,
                'https://images.unsplash.com/photo-1577401239170-897942555fb3?w=200',
                'Heart and brain support with EPA and DHA.', 40),
        Product('prod-5', 'Cetirizine 10mg', 'Allergy', 7.25,
                'https://images.unsplash.com/photo-1471864190281-a93a3070b6de?w=200',
                'Non-drowsy 24 hour allergy relief for hay fever and hives.', 75),
        Product('prod-6', 'Blood Glucose Test Strips', 'Diabetes Care', 24.99,
                'https://images.unsplash.com/photo-1593491205049-7f032d28cf5c?w=200',
                'Pack of 50 strips compatible with most home glucose meters.', 30),
        Product('prod-7', 'Digital Blood Pressure Monitor', 'Devices', 39.99,
                'https://images.unsplash.com/photo-1615486511484-92e172cc4fe0?w=200',
                'Upper-arm cuff monitor with irregular heartbeat detection.', 12),
        Product('prod-8', 'Antiseptic Wound Spray', 'First Aid', 5.75,
                'https://images.unsplash.com/photo-1603398938378-e54eab446dde?w=200',
                'Cleans and disinfects minor cuts, scrapes and burns.', 0),
        Product('prod-9', 'Sterile Gauze Pads', 'First Aid', 3.99,
                'https://images.unsplash.com/photo-1583947215259-38e31be8751f?w=200',
                'Pack of 25 individually wrapped 4x4 inch pads.', 200),
        Product('prod-10', 'Oral Rehydration Salts', 'Digestive Health', 8.49,
                'https://images.unsplash.com/photo-1607619056574-7b8d3ee536b2?w=200',
                'Electrolyte replacement for dehydration. 10 sachets.', 50),
    ]


COMMON_DRUGS = [
    'Amlodipine', 'Amoxicillin', 'Atorvastatin', 'Azithromycin', 'Cetirizine',
    'Ciprofloxacin', 'Clopidogrel', 'Furosemide', 'Gabapentin', 'Hydrochlorothiazide',
    'Ibuprofen', 'Insulin Glargine', 'Levothyroxine', 'Lisinopril', 'Losartan',
    'Metformin', 'Metoprolol', 'Omeprazole', 'Paracetamol', 'Prednisone',
    'Rosuvastatin', 'Sertraline', 'Simvastatin', 'Warfarin',
]


def seed_chat_messages(now_ms: int):
    """The two-message conversation every new chat store starts with."""
    return [
        {
            'id': 'init-1',
            'sender_id': PATIENT_ID,
            'receiver_id': DOCTOR_ID,
            'sender_role': ROLE_PATIENT,
            'text': 'Hi Dr. Ray, I have been feeling a bit dizzy after the morning dose.',
            'timestamp': now_ms - DAY_MS,
        },
        {
            'id': 'init-2',
            'sender_id': DOCTOR_ID,
            'receiver_id': PATIENT_ID,
            'sender_role': ROLE_DOCTOR,
            'text': ('Hello Sarah. That is a known side effect of Lisinopril. Please monitor your '
                     'blood pressure and let me know if it persists.'),
            'timestamp': now_ms - 82000000,
        },
    ]


def now_ms() -> int:
    return int(datetime.now().timestamp() * 1000)
