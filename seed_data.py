"""Demo catalog the in-memory storage strategies start from."""

from datetime import datetime

from schema import (Coordinates, DiseaseTrendRecord, InventoryRecord,
                    MedicineRecord, PharmacyRecord, PricePoint)

APOLLO = 'Apollo Pharmacy'
MEDPLUS = 'MedPlus'
FORTIS = 'Fortis Healthcare'


def _history(*points: tuple[str, float]) -> tuple[PricePoint, ...]:
    return tuple(PricePoint(date=date, price=price) for date, price in points)


def seed_medicines() -> list[MedicineRecord]:
    """Get a fresh copy of the demo medicines."""

    return [
        MedicineRecord(id=1,
                       name='Dolo 650',
                       description='Paracetamol Tablets',
                       price=45.00,
                       category=('popular', 'generic'),
                       rating=4.5,
                       reviews=1200,
                       pharmacies=(APOLLO, MEDPLUS, FORTIS),
                       composition='Paracetamol 650mg',
                       manufacturer='Micro Labs Ltd',
                       price_history=_history(('2023-10-01', 42.00),
                                              ('2023-10-15', 43.50),
                                              ('2023-11-01', 45.00))),
        MedicineRecord(id=2,
                       name='Azithral 500',
                       description='Azithromycin Tablets',
                       price=119.50,
                       category=('antibiotics', 'branded'),
                       rating=4.3,
                       reviews=860,
                       pharmacies=(APOLLO, FORTIS),
                       composition='Azithromycin 500mg',
                       manufacturer='Alembic Pharmaceuticals Ltd',
                       prescription_required=True,
                       price_history=_history(('2023-10-01', 115.00),
                                              ('2023-11-01', 119.50))),
        MedicineRecord(id=3,
                       name='Crocin Advance',
                       description='Fast relief from headache and fever',
                       price=30.00,
                       category=('popular', 'branded'),
                       rating=4.4,
                       reviews=2100,
                       pharmacies=(APOLLO, MEDPLUS),
                       composition='Paracetamol 500mg',
                       manufacturer='GlaxoSmithKline',
                       price_history=_history(('2023-10-01', 28.00),
                                              ('2023-11-01', 30.00))),
        MedicineRecord(id=4,
                       name='Asthalin Inhaler',
                       description='Relief from asthma and bronchospasm',
                       price=155.00,
                       category=('respiratory',),
                       rating=4.6,
                       reviews=540,
                       pharmacies=(MEDPLUS, FORTIS),
                       composition='Salbutamol 100mcg',
                       manufacturer='Cipla Ltd',
                       prescription_required=True,
                       price_history=_history(('2023-10-01', 150.00),
                                              ('2023-11-01', 155.00))),
        MedicineRecord(id=5,
                       name='Atorva 10',
                       description='Atorvastatin Tablets for cholesterol',
                       price=98.00,
                       category=('cardiac', 'branded'),
                       rating=4.2,
                       reviews=430,
                       pharmacies=(APOLLO, MEDPLUS, FORTIS),
                       composition='Atorvastatin 10mg',
                       manufacturer='Zydus Cadila',
                       prescription_required=True,
                       price_history=_history(('2023-10-01', 102.00),
                                              ('2023-11-01', 98.00))),
        MedicineRecord(id=6,
                       name='Chyawanprash',
                       description='Ayurvedic immunity booster',
                       price=210.00,
                       category=('ayurvedic',),
                       rating=4.1,
                       reviews=980,
                       pharmacies=(APOLLO, MEDPLUS),
                       composition='Amla and herbal extracts',
                       manufacturer='Dabur India Ltd',
                       price_history=_history(('2023-11-01', 210.00))),
        MedicineRecord(id=7,
                       name='Pan 40',
                       description='Pantoprazole Tablets for acidity',
                       price=155.00,
                       category=('popular', 'generic'),
                       rating=4.3,
                       reviews=1500,
                       pharmacies=(MEDPLUS, FORTIS),
                       composition='Pantoprazole 40mg',
                       manufacturer='Alkem Laboratories',
                       price_history=_history(('2023-10-01', 149.00),
                                              ('2023-11-01', 155.00))),
        MedicineRecord(id=8,
                       name='Gabapin 300',
                       description='Gabapentin Capsules for nerve pain',
                       price=185.00,
                       category=('neuro',),
                       rating=4.0,
                       reviews=310,
                       pharmacies=(FORTIS,),
                       composition='Gabapentin 300mg',
                       manufacturer='Intas Pharmaceuticals',
                       prescription_required=True,
                       price_history=_history(('2023-11-01', 185.00))),
        MedicineRecord(id=9,
                       name='Montair LC',
                       description='Allergy relief tablets',
                       price=210.00,
                       category=('respiratory', 'branded'),
                       rating=4.4,
                       reviews=720,
                       pharmacies=(APOLLO, FORTIS),
                       composition='Montelukast 10mg and Levocetirizine 5mg',
                       manufacturer='Cipla Ltd',
                       prescription_required=True,
                       price_history=_history(('2023-10-01', 205.00),
                                              ('2023-11-01', 210.00))),
        MedicineRecord(id=10,
                       name='Amoxyclav 625',
                       description='Amoxicillin and Clavulanate Tablets',
                       price=201.00,
                       category=('antibiotics', 'generic'),
                       rating=4.2,
                       reviews=650,
                       pharmacies=(APOLLO, MEDPLUS),
                       composition='Amoxicillin 500mg and Clavulanic Acid 125mg',
                       manufacturer='Abbott India',
                       prescription_required=True,
                       price_history=_history(('2023-11-01', 201.00))),
    ]


def seed_pharmacies() -> list[PharmacyRecord]:
    """Get a fresh copy of the demo pharmacies."""

    return [
        PharmacyRecord(id=1,
                       name=APOLLO,
                       location='Multiple Locations',
                       phone='+91-9999999999',
                       address='123 Main St, City Center',
                       hours='8:00 AM - 10:00 PM',
                       coordinates=Coordinates(lat=12.9716, lng=77.5946),
                       delivery_radius=5),
        PharmacyRecord(id=2,
                       name=MEDPLUS,
                       location='Multiple Locations',
                       phone='+91-8888888888',
                       address='456 Oak Ave, Downtown',
                       hours='9:00 AM - 9:00 PM',
                       coordinates=Coordinates(lat=12.9680, lng=77.5870),
                       delivery_radius=4),
        PharmacyRecord(id=3,
                       name=FORTIS,
                       location='Multiple Locations',
                       phone='+91-7777777777',
                       address='789 Elm St, Medical District',
                       hours='24/7',
                       coordinates=Coordinates(lat=12.9750, lng=77.6000),
                       delivery_radius=7),
    ]


def seed_disease_trends() -> list[DiseaseTrendRecord]:
    """Get a fresh copy of the demo disease trends."""

    return [
        DiseaseTrendRecord('Seasonal Influenza', '+24%', 'increase',
                           'lungs-virus'),
        DiseaseTrendRecord('Allergic Rhinitis', '+18%', 'increase',
                           'allergies'),
        DiseaseTrendRecord('Viral Fever', '+15%', 'increase', 'virus'),
        DiseaseTrendRecord('Upper Respiratory Infection', '-8%', 'decrease',
                           'head-side-cough'),
        DiseaseTrendRecord('Gastroenteritis', '+12%', 'increase', 'stomach'),
    ]


def seed_inventory(medicines: list[MedicineRecord],
                   pharmacies: list[PharmacyRecord],
                   now: datetime) -> list[InventoryRecord]:
    """
    Build starting inventory for every (pharmacy, medicine) pair where the
    medicine lists the pharmacy.

    Stock levels are fixed per pair so that availability is reproducible;
    every pharmacy starts at the catalog price.
    """

    pharmacy_ids = {pharmacy.name: pharmacy.id for pharmacy in pharmacies}
    inventory = []
    for medicine in medicines:
        for name in medicine.pharmacies:
            pharmacy_id = pharmacy_ids[name]
            # every 7th pair starts out of stock
            stock = 0 if (medicine.id * 3 + pharmacy_id) % 7 == 0 else (
                (medicine.id * 17 + pharmacy_id * 11) % 90 + 10)
            inventory.append(
                InventoryRecord(pharmacy_id=pharmacy_id,
                                medicine_id=medicine.id,
                                stock=stock,
                                price=medicine.price,
                                last_updated=now))
    return inventory
