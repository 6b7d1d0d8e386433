from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission


class Command(BaseCommand):
    help = 'Create Django user groups for RBAC: Staff, Purchasing, Admin'

    def handle(self, *args, **options):
        groups_config = [
            {
                'name': 'Staff',
                'description': 'Store staff - can see alerts and ignore or acknowledge them',
                'permissions': [
                    ('catalog', 'view_product'),
                    ('alerts', 'view_alertmarker'),
                    ('alerts', 'add_alertmarker'),
                    ('purchasing', 'view_purchaseorder'),
                ]
            },
            {
                'name': 'Purchasing',
                'description': 'Purchasing team - raises and sends purchase orders, tunes thresholds',
                'permissions': [
                    ('catalog', 'view_product'),
                    ('catalog', 'change_product'),
                    ('alerts', 'view_alertmarker'),
                    ('alerts', 'add_alertmarker'),
                    ('purchasing', 'view_purchaseorder'),
                    ('purchasing', 'add_purchaseorder'),
                    ('purchasing', 'change_purchaseorder'),
                    ('parties', 'view_supplier'),
                ]
            },
            {
                'name': 'Admin',
                'description': 'Owners and developers - full system access including backend',
                'permissions': [
                    ('*', 'All permissions'),  # Handled specially
                ]
            },
        ]

        created_count = 0
        updated_count = 0

        for group_config in groups_config:
            group, created = Group.objects.get_or_create(name=group_config['name'])

            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created group: {group_config["name"]}'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {group_config["name"]}')
                updated_count += 1

            if group_config['name'] == 'Admin':
                group.permissions.set(Permission.objects.all())
                self.stdout.write('  Added all permissions to Admin group')
                continue

            permissions = []
            for app_label, codename in group_config['permissions']:
                try:
                    permissions.append(Permission.objects.get(content_type__app_label=app_label, codename=codename))
                except Permission.DoesNotExist:
                    self.stdout.write(self.style.WARNING(f'  Permission not found: {app_label}.{codename}'))
            group.permissions.set(permissions)
            self.stdout.write(f'  {len(permissions)} permissions set for {group_config["name"]} group')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {updated_count} groups already existed'
        ))
