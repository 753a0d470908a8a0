from reagent_inventory.extensions import db
from reagent_inventory.models import (
    Category, Machine, Notification, Reagent, StockTransaction, User
)
from conftest import login, ADMIN_EMAIL, ADMIN_PASSWORD, TECH_EMAIL, TECH_PASSWORD


def add_notification(app, user_id=1, reagent_id=1, is_read=False):
    with app.app_context():
        notification = Notification(
            user_id=user_id,
            type='low_stock',
            title='Low Stock Alert',
            message='CBC Diluent is running low.',
            reagent_id=reagent_id,
            is_read=is_read
        )
        db.session.add(notification)
        db.session.commit()
        return notification.id


#######################################################################
#  AUTH
#######################################################################

def test_index_redirects_to_login(client):
    response = client.get('/')
    assert response.status_code == 302
    assert '/auth/login' in response.location


def test_login_page(client):
    response = client.get('/auth/login')
    assert response.status_code == 200
    assert b'Sign In' in response.data


def test_login_redirects_by_role(app):
    response = login(app.test_client(), ADMIN_EMAIL, ADMIN_PASSWORD)
    assert response.status_code == 302
    assert response.location.endswith('/admin/')

    response = login(app.test_client(), TECH_EMAIL, TECH_PASSWORD)
    assert response.status_code == 302
    assert response.location.endswith('/stock/withdraw')


def test_login_updates_last_login(app):
    login(app.test_client(), TECH_EMAIL, TECH_PASSWORD)
    with app.app_context():
        assert db.session.get(User, 2).last_login is not None


def test_invalid_login(client):
    response = client.post('/auth/login', data={
        'email': ADMIN_EMAIL,
        'password': 'nope'
    })
    assert response.status_code == 200
    assert b'Invalid email or password' in response.data


def test_deactivated_account_is_refused(app, client):
    with app.app_context():
        db.session.get(User, 2).is_active = False
        db.session.commit()

    response = login(client, TECH_EMAIL, TECH_PASSWORD)
    assert response.status_code == 200
    assert b'Your account has been deactivated' in response.data


def test_first_signup_becomes_admin(bare_app):
    client = bare_app.test_client()
    response = client.post('/auth/signup', data={
        'full_name': 'First Person',
        'email': 'first@hospital.org',
        'password': 'secret1',
        'confirm_password': 'secret1'
    })
    assert response.status_code == 302

    second = bare_app.test_client().post('/auth/signup', data={
        'full_name': 'Second Person',
        'email': 'second@hospital.org',
        'password': 'secret2',
        'confirm_password': 'secret2'
    })
    assert second.status_code == 302

    with bare_app.app_context():
        assert User.query.filter_by(email='first@hospital.org').one().role == 'admin'
        assert User.query.filter_by(email='second@hospital.org').one().role == 'technician'


def test_signup_validation(client):
    response = client.post('/auth/signup', data={
        'full_name': 'Short',
        'email': 'short@hospital.org',
        'password': 'abc',
        'confirm_password': 'abd'
    })
    assert response.status_code == 200
    assert b'Passwords do not match' in response.data

    response = client.post('/auth/signup', data={
        'full_name': 'Duplicate',
        'email': TECH_EMAIL,
        'password': 'secret1',
        'confirm_password': 'secret1'
    })
    assert response.status_code == 200


def test_logout(admin_client):
    response = admin_client.get('/auth/logout')
    assert response.status_code == 302
    assert admin_client.get('/history').status_code == 302


#######################################################################
#  ACCESS CONTROL
#######################################################################

def test_login_required(client):
    protected_routes = [
        '/stock/withdraw',
        '/history',
        '/notifications',
        '/settings',
        '/admin/',
        '/admin/reports'
    ]
    for route in protected_routes:
        response = client.get(route)
        assert response.status_code == 302  # Redirect to login
        assert '/auth/login' in response.location


def test_admin_required(tech_client):
    for route in ['/admin/', '/admin/reagents', '/admin/users', '/admin/reports']:
        assert tech_client.get(route).status_code == 403
    assert tech_client.post('/admin/reagents/1/delete').status_code == 403


def test_technician_cannot_add_stock(app, tech_client):
    assert tech_client.get('/stock/add').status_code == 403
    response = tech_client.post('/stock/add/reagent/1', data={'quantity': 5})
    assert response.status_code == 403
    with app.app_context():
        assert db.session.get(Reagent, 1).current_stock == 10


#######################################################################
#  STOCK FLOW
#######################################################################

def test_withdraw_picker_flow(tech_client):
    response = tech_client.get('/stock/withdraw')
    assert b'Hematology' in response.data
    assert b'Biochemistry' in response.data

    # Category with machines lists machines
    response = tech_client.get('/stock/withdraw/category/1')
    assert b'Sysmex XN-1000' in response.data

    # Category without machines lists reagents directly
    response = tech_client.get('/stock/withdraw/category/2')
    assert b'Glucose Reagent' in response.data

    response = tech_client.get('/stock/withdraw/category/1/machine/1')
    assert b'CBC Diluent' in response.data

    # Machine must belong to the category
    assert tech_client.get('/stock/withdraw/category/2/machine/1').status_code == 404

    response = tech_client.get('/stock/withdraw/reagent/1')
    assert response.status_code == 200
    assert b'Current stock' in response.data


def test_withdraw_records_transaction(app, tech_client):
    response = tech_client.post('/stock/withdraw/reagent/1', data={
        'quantity': 6,
        'reason': 'Daily QC'
    }, follow_redirects=True)

    assert response.status_code == 200
    assert b'Successfully withdrew 6 bottles! Remaining: 4' in response.data

    with app.app_context():
        assert db.session.get(Reagent, 1).current_stock == 4
        transaction = StockTransaction.query.one()
        assert transaction.user_id == 2
        assert transaction.reason == 'Daily QC'
        # Stock fell to the minimum, so the admin was alerted
        assert Notification.query.filter_by(user_id=1, reagent_id=1).count() == 1


def test_withdraw_more_than_available(app, tech_client):
    response = tech_client.post('/stock/withdraw/reagent/2', data={'quantity': 5})

    assert response.status_code == 200
    assert b'Only 3 available' in response.data
    with app.app_context():
        assert db.session.get(Reagent, 2).current_stock == 3
        assert StockTransaction.query.count() == 0


def test_admin_adds_stock(app, admin_client):
    response = admin_client.post('/stock/add/reagent/2', data={
        'quantity': 20
    }, follow_redirects=True)

    assert b'Successfully added 20 kits! New stock: 23' in response.data
    with app.app_context():
        assert db.session.get(Reagent, 2).current_stock == 23
        assert StockTransaction.query.one().reason == 'Stock added'
        assert Notification.query.count() == 0


def test_inactive_reagent_is_hidden(app, tech_client):
    with app.app_context():
        db.session.get(Reagent, 2).is_active = False
        db.session.commit()

    assert b'Glucose Reagent' not in tech_client.get('/stock/withdraw/category/2').data
    assert tech_client.get('/stock/withdraw/reagent/2').status_code == 404


def test_history_shows_only_own_transactions(app, admin_client, tech_client):
    admin_client.post('/stock/add/reagent/2', data={'quantity': 1})
    tech_client.post('/stock/withdraw/reagent/1', data={'quantity': 2})

    response = tech_client.get('/history')
    assert b'CBC Diluent' in response.data
    assert b'Glucose Reagent' not in response.data


#######################################################################
#  NOTIFICATIONS
#######################################################################

def test_notifications_inbox(app, admin_client):
    notification_id = add_notification(app)

    response = admin_client.get('/notifications')
    assert b'CBC Diluent is running low.' in response.data
    assert b'1 unread' in response.data

    admin_client.post(f'/notifications/{notification_id}/read')
    with app.app_context():
        assert db.session.get(Notification, notification_id).is_read is True


def test_mark_all_read_and_delete(app, admin_client):
    first = add_notification(app, reagent_id=1)
    add_notification(app, reagent_id=2)

    response = admin_client.post('/notifications/read-all', follow_redirects=True)
    assert b'All notifications marked as read' in response.data
    with app.app_context():
        assert Notification.unread_count(1) == 0

    admin_client.post(f'/notifications/{first}/delete')
    with app.app_context():
        assert db.session.get(Notification, first) is None
        assert Notification.query.count() == 1


def test_cannot_touch_other_users_notifications(app, tech_client):
    notification_id = add_notification(app, user_id=1)

    assert tech_client.post(f'/notifications/{notification_id}/read').status_code == 404
    assert tech_client.post(f'/notifications/{notification_id}/delete').status_code == 404
    with app.app_context():
        assert db.session.get(Notification, notification_id).is_read is False


#######################################################################
#  SETTINGS
#######################################################################

def test_update_profile(app, tech_client):
    response = tech_client.post('/settings', data={
        'full_name': 'Thomas Tech',
        'phone': '555-0101',
        'save_profile': 'Save Profile'
    }, follow_redirects=True)

    assert b'Profile updated successfully!' in response.data
    with app.app_context():
        tech = db.session.get(User, 2)
        assert tech.full_name == 'Thomas Tech'
        assert tech.phone == '555-0101'


def test_change_password(app, tech_client):
    response = tech_client.post('/settings', data={
        'current_password': 'wrong',
        'new_password': 'newsecret',
        'confirm_password': 'newsecret',
        'update_password': 'Update Password'
    })
    assert b'Current password is incorrect' in response.data

    response = tech_client.post('/settings', data={
        'current_password': TECH_PASSWORD,
        'new_password': 'newsecret',
        'confirm_password': 'newsecret',
        'update_password': 'Update Password'
    }, follow_redirects=True)
    assert b'Password updated successfully!' in response.data
    with app.app_context():
        assert db.session.get(User, 2).check_password('newsecret')


#######################################################################
#  ADMIN
#######################################################################

def test_dashboard(app, admin_client):
    with app.app_context():
        db.session.get(Reagent, 2).current_stock = 1
        db.session.commit()

    response = admin_client.get('/admin/')
    assert response.status_code == 200
    assert b'Dashboard' in response.data
    assert b'Glucose Reagent' in response.data

    response = admin_client.get('/admin/low-stock')
    assert b'Glucose Reagent' in response.data
    assert b'CBC Diluent' not in response.data


def test_category_crud(app, admin_client):
    response = admin_client.post('/admin/categories/new', data={
        'name': 'Serology',
        'description': 'Rapid tests',
        'color': '#0ea5e9'
    }, follow_redirects=True)
    assert b'Category &#34;Serology&#34; saved' in response.data

    with app.app_context():
        category = Category.query.filter_by(name='Serology').one()
        category_id = category.id
        assert category.has_machines is False

    admin_client.post(f'/admin/categories/{category_id}/edit', data={
        'name': 'Serology',
        'has_machines': 'y',
        'color': '#0ea5e9'
    })
    admin_client.post(f'/admin/categories/{category_id}/delete')

    with app.app_context():
        category = db.session.get(Category, category_id)
        assert category.has_machines is True
        assert category.is_active is False
        assert 'Serology' not in [c.name for c in Category.active().all()]


def test_machine_crud(app, admin_client):
    admin_client.post('/admin/machines/new', data={
        'name': 'Mindray BC-6800',
        'category_id': 1
    })
    with app.app_context():
        machine = Machine.query.filter_by(name='Mindray BC-6800').one()
        machine_id = machine.id
        assert machine.category_id == 1

    # Biochemistry does not group by machine
    response = admin_client.post('/admin/machines/new', data={
        'name': 'Cobas',
        'category_id': 2
    })
    assert response.status_code == 200
    with app.app_context():
        assert Machine.query.filter_by(name='Cobas').first() is None

    admin_client.post(f'/admin/machines/{machine_id}/delete')
    with app.app_context():
        assert db.session.get(Machine, machine_id).is_active is False


def test_new_reagent_starts_empty(app, admin_client):
    response = admin_client.post('/admin/reagents/new', data={
        'name': 'EDTA Tubes',
        'category_id': 1,
        'machine_id': 1,
        'unit': 'boxes',
        'minimum_stock': 10,
        'storage_condition': 'Room Temperature',
        'lot_number': 'A-1'
    }, follow_redirects=True)
    assert response.status_code == 200

    with app.app_context():
        reagent = Reagent.query.filter_by(name='EDTA Tubes').one()
        assert reagent.current_stock == 0
        assert reagent.machine_id == 1
        assert reagent.minimum_stock == 10


def test_reagent_machine_dropped_for_category_without_machines(app, admin_client):
    admin_client.post('/admin/reagents/new', data={
        'name': 'Urea Kit',
        'category_id': 2,
        'machine_id': 1,
        'unit': 'kits',
        'minimum_stock': 2,
        'storage_condition': 'Refrigerated (2-8°C)'
    })
    with app.app_context():
        assert Reagent.query.filter_by(name='Urea Kit').one().machine_id is None


def test_reagent_machine_from_other_category_is_rejected(app, admin_client):
    with app.app_context():
        immunology = Category(name='Immunology', has_machines=True)
        db.session.add(immunology)
        db.session.commit()
        immunology_id = immunology.id

    response = admin_client.post('/admin/reagents/new', data={
        'name': 'TSH Kit',
        'category_id': immunology_id,
        'machine_id': 1,
        'unit': 'kits',
        'minimum_stock': 2,
        'storage_condition': 'Refrigerated (2-8°C)'
    })
    assert response.status_code == 200
    assert b'Selected machine does not belong to this category' in response.data
    with app.app_context():
        assert Reagent.query.filter_by(name='TSH Kit').first() is None


def test_edit_reagent_keeps_stock(app, admin_client):
    assert admin_client.get('/admin/reagents/1/edit').status_code == 200

    admin_client.post('/admin/reagents/1/edit', data={
        'name': 'CBC Diluent 20L',
        'category_id': 1,
        'machine_id': 1,
        'unit': 'bottles',
        'minimum_stock': 3,
        'storage_condition': 'Room Temperature',
        'expiry_date': '2030-01-31'
    })
    with app.app_context():
        reagent = db.session.get(Reagent, 1)
        assert reagent.name == 'CBC Diluent 20L'
        assert reagent.current_stock == 10
        assert reagent.minimum_stock == 3
        assert reagent.expiry_date.isoformat() == '2030-01-31'


def test_reagent_list_filters(admin_client):
    response = admin_client.get('/admin/reagents?category=2')
    assert b'Glucose Reagent' in response.data
    assert b'CBC Diluent' not in response.data

    response = admin_client.get('/admin/reagents?q=cbc')
    assert b'CBC Diluent' in response.data
    assert b'Glucose Reagent' not in response.data


def test_delete_reagent_is_soft(app, admin_client):
    admin_client.post('/admin/reagents/2/delete')
    with app.app_context():
        reagent = db.session.get(Reagent, 2)
        assert reagent is not None
        assert reagent.is_active is False


def test_user_management(app, admin_client):
    response = admin_client.post('/admin/users/new', data={
        'full_name': 'Nina Nurse',
        'email': 'nina@hospital.org',
        'password': 'secret1',
        'role': 'technician',
        'phone': '555-0199'
    }, follow_redirects=True)
    assert b'User nina@hospital.org created' in response.data

    response = admin_client.post('/admin/users/new', data={
        'full_name': 'Nina Again',
        'email': 'NINA@hospital.org',
        'password': 'secret1',
        'role': 'technician'
    })
    assert b'A user with this email already exists' in response.data

    admin_client.post('/admin/users/2/toggle')
    response = admin_client.post('/admin/users/1/toggle', follow_redirects=True)
    assert b'You cannot deactivate your own account' in response.data

    with app.app_context():
        assert User.query.filter_by(email='nina@hospital.org').count() == 1
        assert db.session.get(User, 2).is_active is False
        assert db.session.get(User, 1).is_active is True


#######################################################################
#  REPORTS
#######################################################################

def test_reports_filter_and_export(app, admin_client, tech_client):
    tech_client.post('/stock/withdraw/reagent/1', data={'quantity': 2, 'reason': 'QC'})
    admin_client.post('/stock/add/reagent/2', data={'quantity': 5})

    response = admin_client.get('/admin/reports?type=withdraw')
    assert b'CBC Diluent' in response.data
    assert b'Glucose Reagent' not in response.data

    response = admin_client.get('/admin/reports/export/csv')
    assert response.status_code == 200
    assert response.mimetype == 'text/csv'
    assert 'attachment; filename=transactions-' in response.headers['Content-Disposition']
    lines = response.data.decode('utf-8').splitlines()
    assert lines[0] == 'Date,Time,Reagent,Category,Machine,Type,Quantity,Previous,New,User,Reason'
    assert len(lines) == 3

    response = admin_client.get('/admin/reports/export/csv?search=glucose')
    lines = response.data.decode('utf-8').splitlines()
    assert len(lines) == 2
    assert 'Glucose Reagent' in lines[1]

    response = admin_client.get('/admin/reports/export/xlsx')
    assert response.status_code == 200
    assert response.headers['Content-Disposition'].endswith('.xlsx')
    assert response.data[:2] == b'PK'


def test_reports_date_range_is_inclusive(app, tech_client, admin_client):
    tech_client.post('/stock/withdraw/reagent/1', data={'quantity': 1})
    with app.app_context():
        day = StockTransaction.query.one().created_at.strftime('%Y-%m-%d')

    response = admin_client.get(f'/admin/reports/export/csv?start_date={day}&end_date={day}')
    assert len(response.data.decode('utf-8').splitlines()) == 2

    response = admin_client.get('/admin/reports/export/csv?end_date=2000-01-01')
    assert len(response.data.decode('utf-8').splitlines()) == 1
