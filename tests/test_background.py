"""
Tests for request-scoped background tasks
"""
from unittest.mock import MagicMock

import pytest
from flask import Flask

from services.background import BackgroundTasks, create_executor


@pytest.mark.unit
class TestBackgroundTasks:
    """Tests for BackgroundTasks"""

    def test_nothing_runs_until_run(self):
        """Test add only registers the task"""
        func = MagicMock()
        tasks = BackgroundTasks()
        tasks.add('notify', func, 'a', key='b')
        func.assert_not_called()

        tasks.run()
        func.assert_called_once_with('a', key='b')
        assert tasks.completed == ['notify']
        assert tasks.pending == []

    def test_run_is_once(self):
        """Test a second run does not repeat tasks"""
        func = MagicMock()
        tasks = BackgroundTasks()
        tasks.add('notify', func)
        tasks.run()
        tasks.run()
        assert func.call_count == 1

    def test_discard(self):
        """Test discarded tasks never run"""
        func = MagicMock()
        tasks = BackgroundTasks()
        tasks.add('notify', func)
        tasks.discard()
        tasks.run()
        func.assert_not_called()

    def test_failure_is_recorded_and_contained(self):
        """Test one failing task does not stop the next"""
        after = MagicMock()
        tasks = BackgroundTasks()
        tasks.add('broken', MagicMock(side_effect=RuntimeError('boom')))
        tasks.add('after', after)
        tasks.run()

        after.assert_called_once()
        assert tasks.completed == ['after']
        assert tasks.failures[0]['name'] == 'broken'
        assert tasks.failures[0]['error'] == 'boom'

    def test_executor_submission(self):
        """Test tasks are handed to the executor when one is set"""
        executor = MagicMock()
        tasks = BackgroundTasks(executor=executor)
        tasks.add('notify', MagicMock())
        tasks.run()
        executor.submit.assert_called_once()

    def test_create_executor_modes(self):
        """Test inline mode has no executor and thread mode builds a pool"""
        app = Flask(__name__)
        app.config['BACKGROUND_TASKS_MODE'] = 'inline'
        assert create_executor(app) is None

        app.config.update(BACKGROUND_TASKS_MODE='thread', BACKGROUND_TASKS_WORKERS=2)
        executor = create_executor(app)
        try:
            assert executor._max_workers == 2
        finally:
            executor.shutdown(wait=False)


@pytest.mark.integration
class TestRequestLifecycle:
    """Tests for tasks tied to request success"""

    def test_failed_request_sends_no_email(self, client, email_client):
        """Test a rejected signup leaves no email behind"""
        response = client.post('/api/auth/signup', json={'email': 'bad', 'password': 'password123', 'name': 'X'})
        assert response.status_code == 400
        assert email_client.sent == []

    def test_successful_request_runs_tasks(self, client, admin_user, client_user, make_project, login, email_client):
        """Test tasks registered by a mutation run after the response"""
        project = make_project(client_user)
        login(client, admin_user)
        response = client.post('/api/rpc/project.update', json={
            'id': project.id, 'status': 'IN_PROGRESS', 'notifyClient': True
        })
        assert response.status_code == 200
        assert email_client.subjects() == ['Project Update: Company Website']
