"""Script to clear all branch records except admin users"""
from pmcmicro import create_app, db
from pmcmicro.models import (
    User, Company, Branch, StaffMember, Group, Client, Loan, Payment,
    Savings, Withdrawal, ExpenseCategory, ActualExpense, OfficeRentPrepaid, ActivityLog
)

# Children first so foreign keys are never left dangling
CLEAR_ORDER = [
    ('activity logs', ActivityLog),
    ('payments', Payment),
    ('loans', Loan),
    ('withdrawals', Withdrawal),
    ('savings', Savings),
    ('expenses', ActualExpense),
    ('expense categories', ExpenseCategory),
    ('prepaid rent', OfficeRentPrepaid),
    ('clients', Client),
    ('groups', Group),
    ('staff members', StaffMember),
]

def clear_database_except_admin():
    """Clear all data from database except admin users"""
    app = create_app()

    with app.app_context():
        admin_users = User.query.filter_by(role='admin').all()

        if not admin_users:
            print("Warning: No admin users found in database!")
            confirm = input("Continue clearing all data? (yes/no): ")
        else:
            print(f"Found {len(admin_users)} admin user(s) to preserve:")
            for user in admin_users:
                print(f"  - {user.username} ({user.full_name})")
            confirm = input("\nProceed with clearing all other data? (yes/no): ")

        if confirm.lower() != 'yes':
            print("Operation cancelled.")
            return

        print("\nClearing database...")
        try:
            for label, model in CLEAR_ORDER:
                print(f"- Deleting {label}...")
                model.query.delete()

            print("- Deleting non-admin users...")
            User.query.filter(User.role != 'admin').delete()

            print("- Deleting branches and companies...")
            Branch.query.delete()
            Company.query.delete()

            db.session.commit()
        except Exception as e:
            db.session.rollback()
            print(f"\nError clearing database: {e}")
            raise

        print("\nDatabase cleared successfully!")
        print(f"Preserved {len(admin_users)} admin user(s)")

if __name__ == '__main__':
    clear_database_except_admin()
