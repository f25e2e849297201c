import pytest

from prizeversity_app import create_app, db
from prizeversity_app.config import Config
from prizeversity_app.models import (
    Classroom,
    ClassroomBalance,
    ClassroomMember,
    Group,
    GroupMember,
    GroupSet,
    User,
)


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {'check_same_thread': False}
    }
    WTF_CSRF_ENABLED = False
    SCHEDULER_ENABLED = False
    LOG_DIR = None
    LOG_LEVEL = 'WARNING'


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    def _login(user):
        user_id = user if isinstance(user, int) else user.user_id
        with client.session_transaction() as session:
            session['_user_id'] = str(user_id)
            session['_fresh'] = True
        return client

    return _login


class EconomyBuilder:
    """Seeds users, classrooms and groups for a test."""

    def __init__(self):
        self._counter = 0

    def user(self, username=None, role=User.ROLE_STUDENT):
        self._counter += 1
        username = username or f'user{self._counter}'
        user = User(username=username, email=f'{username}@example.com', role=role)
        db.session.add(user)
        db.session.flush()
        return user

    def classroom(self, teacher=None, ta_bit_policy=Classroom.TA_POLICY_FULL, siphon_timeout_hours=None):
        teacher = teacher or self.user(role=User.ROLE_TEACHER)
        self._counter += 1
        classroom = Classroom(
            name=f'Class {self._counter}',
            code=f'C{self._counter:05d}',
            teacher_id=teacher.user_id,
            ta_bit_policy=ta_bit_policy,
            siphon_timeout_hours=siphon_timeout_hours,
        )
        db.session.add(classroom)
        db.session.flush()
        return classroom

    def enroll(self, classroom, user, role=ClassroomMember.ROLE_STUDENT, balance=0,
               personal_multiplier=1.0, luck=1.0):
        db.session.add(ClassroomMember(classroom_id=classroom.classroom_id, user_id=user.user_id, role=role))
        if role == ClassroomMember.ROLE_STUDENT:
            db.session.add(ClassroomBalance(
                classroom_id=classroom.classroom_id,
                user_id=user.user_id,
                balance=balance,
                personal_multiplier=personal_multiplier,
                luck=luck,
            ))
        db.session.flush()
        return user

    def student(self, classroom, **kwargs):
        return self.enroll(classroom, self.user(), **kwargs)

    def ta(self, classroom):
        return self.enroll(classroom, self.user(role=User.ROLE_STUDENT), role=ClassroomMember.ROLE_ADMIN)

    def group_set(self, classroom, increment=0.0, join_approval=False, max_members=None):
        group_set = GroupSet(
            classroom_id=classroom.classroom_id,
            name='Project Teams',
            join_approval=join_approval,
            max_members=max_members,
            group_multiplier_increment=increment,
        )
        db.session.add(group_set)
        db.session.flush()
        return group_set

    def group(self, group_set, members=(), name='Team', group_multiplier=1.0, max_members=None):
        group = Group(
            group_set_id=group_set.group_set_id,
            name=name,
            group_multiplier=group_multiplier,
            max_members=max_members,
        )
        for member in members:
            group.members.append(GroupMember(user_id=member.user_id, status=GroupMember.STATUS_APPROVED))
        db.session.add(group)
        db.session.flush()
        return group


@pytest.fixture
def builder(app):
    return EconomyBuilder()


@pytest.fixture
def balance_of(app):
    def _balance_of(user, classroom):
        row = ClassroomBalance.query.filter_by(
            user_id=user.user_id, classroom_id=classroom.classroom_id
        ).first()
        return row.balance if row else 0

    return _balance_of
