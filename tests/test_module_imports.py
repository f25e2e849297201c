"""
Tests for module wiring

Each service must import on its own in a fresh interpreter, and the
registry must still mount every JSON blueprint at its prefix.
"""

import subprocess
import sys

import pytest


SERVICE_MODULES = [
    'prizeversity_app.modules.groups.services.membership_service',
    'prizeversity_app.modules.siphon.services.siphon_service',
    'prizeversity_app.modules.siphon.interface',
    'prizeversity_app.modules.wallet.services.transfer_service',
    'prizeversity_app.modules.wallet.services.adjustment_service',
    'prizeversity_app.modules.mystery_box.services.mystery_box_service',
    'prizeversity_app.modules.groups.routes',
    'prizeversity_app.modules.siphon.routes',
]


class TestImports:

    @pytest.mark.parametrize('module', SERVICE_MODULES)
    def test_module_imports_first(self, module):
        result = subprocess.run(
            [sys.executable, '-c', f'import {module}'],
            capture_output=True,
            text=True,
        )

        assert result.returncode == 0, result.stderr

    def test_routes_are_registered(self, app):
        rules = {rule.rule for rule in app.url_map.iter_rules()}

        assert '/api/wallet/adjust' in rules
        assert '/api/groups/<int:group_id>/join' in rules
        assert '/api/siphon/<int:siphon_id>/vote' in rules
        assert '/api/mystery-boxes/<int:template_id>/open' in rules
