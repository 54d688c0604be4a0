import sys
from datetime import timedelta
from pathlib import Path

# Add the project root to path
current_dir = Path(__file__).parent.parent
sys.path.append(str(current_dir))

from billing_admin.app import create_app
from billing_admin.adapters.sqlite.appointments_repo import AppointmentRepository
from billing_admin.adapters.sqlite.lookups_repo import HmoProviderRepository, PatientRepository, SpecialistRepository
from billing_admin.common.utils import clinic_today
from billing_admin.services.auth_service import AuthService
from billing_admin.services.billing_service import BillingService
from billing_admin.services.doctor_payment_service import DoctorPaymentService
from billing_admin.services.expense_service import ExpenseService


def seed():
    app = create_app()
    with app.app_context():
        auth = AuthService()
        specialists = SpecialistRepository()
        hmos = HmoProviderRepository()
        patients = PatientRepository()
        appointments = AppointmentRepository()
        today = clinic_today()

        # 1. Users
        print("Creating users...")
        auth.register_user("admin", "admin123", "admin", "Clinic Administrator")
        auth.register_user("cashier1", "cashier123", "cashier", "Front Desk Cashier")

        # 2. Doctors
        print("Adding specialists...")
        santos = specialists.create("Dr. Maria Santos", "Internal Medicine")
        reyes = specialists.create("Dr. Jose Reyes", "Pediatrics")
        specialists.create("Dr. Ana Cruz", "OB-GYN")

        # 3. HMO providers
        print("Adding HMO providers...")
        for name, code in (("Maxicare", "MAXI"), ("Intellicare", "INTL"), ("PhilCare", "PHIL"), ("Medicard", "MEDC")):
            hmos.create(name, code)

        # 4. Patients
        print("Adding patients...")
        juan = patients.create("P-0001", "Juan", "Dela Cruz", "1950-04-12", True, "0917-000-0001")
        liza = patients.create("P-0002", "Liza", "Soberano", "1996-01-04", False, "0917-000-0002")
        pedro = patients.create("P-0003", "Pedro", "Penduko", "1958-09-30", True, "0917-000-0003")

        # 5. Confirmed appointments waiting for billing
        print("Adding appointments...")
        day = today.isoformat()
        a1 = appointments.create(juan, santos, "consultation", 800, day, "09:00", status="Confirmed")
        appointments.add_lab_test(a1, "Complete Blood Count", 350)
        appointments.add_lab_test(a1, "Urinalysis", 150)
        appointments.create(juan, santos, "follow_up", 500, day, "10:30", status="Confirmed")
        a3 = appointments.create(liza, reyes, "general_consultation", 700, day, "11:00", status="Confirmed")
        appointments.add_lab_test(a3, "Chest X-Ray", 600)
        a4 = appointments.create(pedro, reyes, "consultation", 900, (today - timedelta(days=1)).isoformat(), "14:00",
                                 status="Confirmed")
        appointments.create(pedro, santos, "consultation", 900, (today + timedelta(days=3)).isoformat(), "08:30")

        # 6. One paid transaction, a doctor payment and expenses so the reports have data
        print("Adding transactions, doctor payments and expenses...")
        billing = BillingService()
        tx = billing.create_from_appointments(
            {"appointment_ids": [str(a4)], "payment_method": "cash", "is_senior_citizen": "1"}, None)
        billing.mark_as_paid(tx["id"], None)

        DoctorPaymentService().create_payment({
            "doctor_id": str(reyes), "basic_salary": "15000", "incentives": "2000", "deductions": "500",
            "payment_date": day, "payment_method": "bank_transfer", "status": "paid",
        }, None)
        expenses = ExpenseService()
        expenses.create_expense({
            "expense_category": "utilities", "expense_name": "Electricity bill", "amount": "4350",
            "expense_date": day, "payment_method": "bank_transfer", "vendor_name": "Meralco", "status": "approved",
        }, None)
        expenses.create_expense({
            "expense_category": "medical_supplies", "expense_name": "Gloves and syringes", "amount": "1280.50",
            "expense_date": day, "payment_method": "cash", "receipt_number": "OR-1042", "status": "pending",
        }, None)

        print("Seeding completed successfully.")


if __name__ == "__main__":
    seed()
