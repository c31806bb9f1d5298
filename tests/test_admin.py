"""
Tests for user administration, file management and the activity feed
"""
from datetime import datetime, timedelta

import pytest

from database.connection import get_db_session
from database.models import ActivityLog, Attachment, Message, Payment, PortfolioImage
from services.admin_service import AdminService
from services.errors import NotFoundError, PermissionDenied, ValidationError
from services.file_service import FileService


@pytest.mark.integration
class TestAdminService:
    """Tests for role management and dashboard counts"""

    def test_requires_admin(self, app, client_user, as_user):
        """Test clients cannot build an AdminService"""
        with pytest.raises(PermissionDenied):
            with get_db_session() as db:
                AdminService(db, as_user(client_user))

    def test_promote_and_demote(self, app, admin_user, client_user, as_user):
        """Test a client can be promoted and demoted again"""
        with get_db_session() as db:
            result = AdminService(db, as_user(admin_user)).promote_to_admin(client_user.id)
        assert result['user']['role'] == 'ADMIN'
        assert result['message'] == 'User client@example.com promoted to admin successfully'

        with get_db_session() as db:
            result = AdminService(db, as_user(admin_user)).demote_to_client(client_user.id)
        assert result['user']['role'] == 'CLIENT'

    def test_cannot_demote_self(self, app, admin_user, as_user):
        """Test admins cannot demote themselves"""
        with pytest.raises(PermissionDenied):
            with get_db_session() as db:
                AdminService(db, as_user(admin_user)).demote_to_client(admin_user.id)

    def test_promote_unknown_user(self, app, admin_user, as_user):
        """Test unknown users are 404"""
        with pytest.raises(NotFoundError):
            with get_db_session() as db:
                AdminService(db, as_user(admin_user)).promote_to_admin('ghost')

    def test_admin_stats(self, app, admin_user, client_user, make_project, as_user):
        """Test user and project counts"""
        make_project(client_user)
        with get_db_session() as db:
            stats = AdminService(db, as_user(admin_user)).get_admin_stats()
        assert stats == {'totalUsers': 2, 'adminCount': 1, 'clientCount': 1, 'totalProjects': 1}

    def test_get_users_procedure(self, client, admin_user, client_user, login):
        """Test admin.getUsers filters by role"""
        login(client, admin_user)
        response = client.get('/api/rpc/admin.getUsers?input={"role": "CLIENT"}')
        assert [u['email'] for u in response.get_json()['data']] == ['client@example.com']


@pytest.fixture
def files(client_user, make_project):
    """One chat attachment and one portfolio image"""
    project = make_project(client_user, title='Company Website')
    with get_db_session() as db:
        message = Message(project_id=project.id, sender_id=client_user.id, content='Brief attached')
        message.attachments.append(Attachment(name='brief.pdf', url='https://cdn.test/brief.pdf',
                                              key='chat-attachments/p/brief.pdf', size=4000,
                                              mime_type='application/pdf'))
        db.add(message)
        db.add(PortfolioImage(user_id=client_user.id, url='https://cdn.test/hero.png', key='portfolio/hero.png',
                              name='Hero', file_name='hero.png', size=1000, type='image/png',
                              created_at=datetime.utcnow() - timedelta(days=30)))
    with get_db_session() as db:
        attachment = db.query(Attachment).one()
        image = db.query(PortfolioImage).one()
    return project, attachment, image


@pytest.mark.integration
class TestFileService:
    """Tests for the admin file browser"""

    def test_lists_both_sources(self, app, admin_user, as_user, files):
        """Test attachments and portfolio images are merged"""
        with get_db_session() as db:
            result = FileService(db, as_user(admin_user)).get_all_files(sort_by='name', sort_order='asc')
        assert [f['fileName'] for f in result['files']] == ['brief.pdf', 'hero.png']
        assert result['files'][0]['project']['title'] == 'Company Website'
        assert result['files'][1]['source'] == 'portfolio'
        assert result['total'] == 2

    def test_category_and_project_filters(self, app, admin_user, as_user, files):
        """Test category and projectId narrow the listing"""
        project = files[0]
        with get_db_session() as db:
            service = FileService(db, as_user(admin_user))
            assert service.get_all_files(category='portfolio')['total'] == 1
            assert [f['source'] for f in service.get_all_files(project_id=project.id)['files']] == ['chat']

    def test_files_by_project_access(self, app, client_user, make_user, as_user, files):
        """Test owners can list project files and strangers cannot"""
        project = files[0]
        with get_db_session() as db:
            assert len(FileService(db, as_user(client_user)).get_files_by_project(project.id)) == 1
        with pytest.raises(PermissionDenied):
            with get_db_session() as db:
                FileService(db, as_user(make_user(email='x@example.com'))).get_files_by_project(project.id)

    def test_delete_survives_storage_failure(self, app, admin_user, as_user, files, storage):
        """Test the row is removed even when storage fails"""
        storage.fail_deletes = True
        _, attachment, _ = files
        with get_db_session() as db:
            assert FileService(db, as_user(admin_user), storage).delete_file(attachment.id, 'chat') == {'success': True}
        with get_db_session() as db:
            assert db.query(Attachment).count() == 0

    def test_bulk_delete_reports_failures(self, app, admin_user, as_user, files, storage):
        """Test missing files are reported without stopping the batch"""
        _, attachment, image = files
        with get_db_session() as db:
            result = FileService(db, as_user(admin_user), storage).bulk_delete([
                {'fileId': attachment.id, 'source': 'chat'},
                {'fileId': 'ghost', 'source': 'chat'},
                {'fileId': image.id, 'source': 'portfolio'},
            ])
        assert result['deletedCount'] == 2
        assert result['failedFiles'] == ['ghost']
        assert sorted(storage.deleted) == ['chat-attachments/p/brief.pdf', 'portfolio/hero.png']

    def test_bulk_delete_needs_list(self, app, admin_user, as_user):
        """Test a non-list payload is rejected"""
        with pytest.raises(ValidationError):
            with get_db_session() as db:
                FileService(db, as_user(admin_user)).bulk_delete(None)

    def test_statistics(self, app, admin_user, as_user, files):
        """Test totals and the seven day window"""
        with get_db_session() as db:
            stats = FileService(db, as_user(admin_user)).get_file_statistics()
        assert stats['totalFiles'] == 2
        assert stats['totalSize'] == 5000
        assert stats['recentFiles'] == 1
        assert stats['breakdown'] == {'attachments': 1, 'portfolio': 1}

    def test_file_procedures_are_admin_only(self, client, client_user, login, files):
        """Test clients get 403 on the file browser but may list their project"""
        login(client, client_user)
        assert client.get('/api/rpc/files.getAllFiles').status_code == 403
        response = client.get(f'/api/rpc/files.getFilesByProject?input={{"projectId": "{files[0].id}"}}')
        assert response.status_code == 200


@pytest.mark.integration
class TestActivityProcedures:
    """Tests for the activity router"""

    def test_recent_for_user_includes_project_activity(self, client, admin_user, client_user,
                                                        make_project, login):
        """Test clients see activity on their projects performed by admins"""
        project = make_project(client_user)
        with get_db_session() as db:
            db.add(ActivityLog(user_id=admin_user.id, project_id=project.id, type='PROJECT_UPDATED',
                               description='Updated'))
            db.add(ActivityLog(user_id=admin_user.id, type='USER_LOGIN', description='Admin login'))
        login(client, client_user)
        data = client.get('/api/rpc/activity.getRecentForUser').get_json()['data']
        assert [a['type'] for a in data] == ['PROJECT_UPDATED']

    def test_get_all_filters_by_type(self, client, admin_user, login):
        """Test admins filter by type and unknown types are 400"""
        with get_db_session() as db:
            db.add(ActivityLog(user_id=admin_user.id, type='USER_LOGIN'))
            db.add(ActivityLog(user_id=admin_user.id, type='PROJECT_CREATED'))
        login(client, admin_user)
        data = client.get('/api/rpc/activity.getAll?input={"type": "USER_LOGIN"}').get_json()['data']
        assert data['total'] == 1
        assert client.get('/api/rpc/activity.getCount').get_json()['data'] == {'count': 2}
        assert client.get('/api/rpc/activity.getAll?input={"type": "NOPE"}').status_code == 400

    def test_project_feed_checks_access(self, client, client_user, make_user, make_project, login):
        """Test clients cannot read other projects' activity"""
        project = make_project(make_user(email='other@example.com'))
        login(client, client_user)
        response = client.get(f'/api/rpc/activity.getForProject?input={{"projectId": "{project.id}"}}')
        assert response.status_code == 403


@pytest.fixture
def ledger(client_user, make_project, make_invoice):
    """A live project paid in full and a completed one still owing, with one long client message"""
    live = make_project(client_user, title='Company Website', status='IN_PROGRESS')
    done = make_project(client_user, title='Landing Page', status='COMPLETED')
    invoice = make_invoice(live, number='INV-0001', amount=1000.0, status='PAID')
    make_invoice(done, number='INV-0002', amount=400.0)
    with get_db_session() as db:
        db.add(Payment(invoice_id=invoice.id, user_id=client_user.id, amount=1000.0,
                       status='COMPLETED', paid_at=datetime.utcnow()))
        db.add(Payment(invoice_id=invoice.id, user_id=client_user.id, amount=50.0, status='FAILED'))
        db.add(Message(project_id=live.id, sender_id=client_user.id, content='x' * 150))
    return live, done


@pytest.mark.integration
class TestAnalytics:
    """Tests for the admin analytics and project timeline"""

    def test_summary(self, app, admin_user, as_user, ledger):
        """Test revenue counts completed payments only and admins are not clients"""
        with get_db_session() as db:
            analytics = AdminService(db, as_user(admin_user)).get_analytics('all')
        summary = analytics['summary']
        assert summary['totalRevenue'] == 1000.0
        assert summary['averageProjectValue'] == 500.0
        assert (summary['totalProjects'], summary['completedProjects'], summary['activeProjects']) == (2, 1, 1)
        assert summary['completionRate'] == 0.5
        assert summary['totalClients'] == 1
        assert summary['averageMessagesPerProject'] == 0.5

        client = analytics['clients'][0]
        assert (client['totalSpent'], client['messageCount'], client['projectCount']) == (1000.0, 1, 2)
        assert {s['status']: s['percentage'] for s in analytics['charts']['projectStatus']} == {
            'IN_PROGRESS': 50.0, 'COMPLETED': 50.0,
        }
        assert analytics['charts']['messagesByDay'][0]['fromClients'] == 1
        assert analytics['recentActivity'][0]['description'] == 'Client One sent a message in Company Website'

    def test_date_range_overrides_period(self, app, admin_user, as_user, ledger):
        """Test an explicit range outside the data empties every figure"""
        with get_db_session() as db:
            analytics = AdminService(db, as_user(admin_user)).get_analytics(
                '7d', date_range={'from': '2020-01-01', 'to': '2020-01-31'}
            )
        assert analytics['summary']['totalProjects'] == 0
        assert analytics['summary']['totalRevenue'] == 0
        assert analytics['summary']['completionRate'] == 0

    def test_unknown_period(self, app, admin_user, as_user):
        """Test periods are validated"""
        with pytest.raises(ValidationError):
            with get_db_session() as db:
                AdminService(db, as_user(admin_user)).get_analytics('forever')

    def test_timeline_financials(self, app, admin_user, client_user, as_user, ledger):
        """Test invoiced, paid and pending amounts per project"""
        live, done = ledger
        with get_db_session() as db:
            service = AdminService(db, as_user(admin_user))
            single = service.get_project_timeline(project_id=live.id)
            everything = service.get_project_timeline(client_id=client_user.id)

        assert len(single) == 1
        assert single[0]['financials'] == {'totalInvoiced': 1000.0, 'totalPaid': 1000.0, 'pendingAmount': 0}
        assert len(single[0]['recentMessages'][0]['content']) == 100
        pending = {p['title']: p['financials']['pendingAmount'] for p in everything}
        assert pending == {'Company Website': 0, 'Landing Page': 400.0}

    def test_analytics_procedures(self, client, admin_user, client_user, login, ledger):
        """Test admins reach the analytics over RPC and clients do not"""
        login(client, admin_user)
        response = client.get('/api/rpc/admin.getAnalytics?input={"period": "all"}')
        assert response.status_code == 200
        assert response.get_json()['data']['summary']['totalProjects'] == 2
        assert client.get('/api/rpc/admin.getAnalytics?input={"period": "forever"}').status_code == 400

        login(client, client_user)
        assert client.get('/api/rpc/admin.getProjectTimeline').status_code == 403


@pytest.mark.integration
class TestFileSharing:
    """Tests for reposting a file into another project's chat"""

    def test_share_chat_attachment(self, app, admin_user, client_user, make_project, as_user, files):
        """Test the copy lands in the target chat without a storage key"""
        _, attachment, _ = files
        target = make_project(client_user, title='Mobile App')
        with get_db_session() as db:
            result = FileService(db, as_user(admin_user)).share_file_with_project(attachment.id, 'chat', target.id)
        assert result['message'] == 'File shared successfully'

        with get_db_session() as db:
            message = db.query(Message).filter(Message.id == result['messageId']).one()
            assert message.project_id == target.id
            assert message.receiver_id == client_user.id
            assert message.content == 'Shared file: brief.pdf (from project: Company Website)'
            copy = message.attachments[0]
            assert (copy.url, copy.key) == ('https://cdn.test/brief.pdf', None)
            assert db.query(Attachment).count() == 2

    def test_share_portfolio_image_with_note(self, app, admin_user, as_user, files):
        """Test a custom message replaces the default text"""
        project, _, image = files
        with get_db_session() as db:
            result = FileService(db, as_user(admin_user)).share_file_with_project(
                image.id, 'portfolio', project.id, message='Hero image for the homepage'
            )
        with get_db_session() as db:
            message = db.query(Message).filter(Message.id == result['messageId']).one()
            assert message.content == 'Hero image for the homepage'
            assert message.attachments[0].name == 'hero.png'

    def test_missing_target_or_file(self, app, admin_user, as_user, files):
        """Test unknown projects and files are 404"""
        project, attachment, _ = files
        with get_db_session() as db:
            service = FileService(db, as_user(admin_user))
            with pytest.raises(NotFoundError, match='Target project not found'):
                service.share_file_with_project(attachment.id, 'chat', 'missing')
            with pytest.raises(NotFoundError, match='File not found'):
                service.share_file_with_project('ghost', 'portfolio', project.id)

    def test_share_procedure_is_admin_only(self, client, client_user, login, files):
        """Test clients cannot share files"""
        project, attachment, _ = files
        login(client, client_user)
        response = client.post('/api/rpc/files.shareFileWithProject',
                               json={'fileId': attachment.id, 'source': 'chat', 'targetProjectId': project.id})
        assert response.status_code == 403
