"""
User test factory.

Generates payloads for adding users to a company.
"""

import factory
from faker import Faker

fake = Faker()


class UserFactory(factory.Factory):
    """
    Factory for generating user create payloads.

    Usage:
        payload = UserFactory()
        payload = UserFactory(role="manager")
    """

    class Meta:
        model = dict

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    first_name = factory.LazyFunction(fake.first_name)
    last_name = factory.LazyFunction(fake.last_name)
    password = "longenoughpassword"  # noqa: S105
    role = "user"


class ManagerUserFactory(UserFactory):
    """Factory for managers."""

    role = "manager"
