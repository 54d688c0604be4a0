from typing import Dict, Optional

from billing_admin.adapters.sqlite.lookups_repo import HmoProviderRepository
from billing_admin.common.utils import now_str
from billing_admin.common.validators import BillingError, ValidationError, is_email, optional, parse_bool, require
from billing_admin.services.listing import HMO_PROVIDER_SEARCH_FIELDS, filter_rows, paginate


class HmoProviderService:
    def __init__(self, repo=None):
        self.repo = repo or HmoProviderRepository()

    def list_providers(self, filters: Dict, page_size: int = 15) -> Dict:
        status = filters.get('status') or None
        is_active = {'active': True, 'inactive': False}.get(status)
        rows = self.repo.get_all(is_active=is_active)
        rows = filter_rows(rows, filters.get('search'), HMO_PROVIDER_SEARCH_FIELDS)
        return {'page': paginate(rows, filters.get('page'), page_size), 'summary': self.summary()}

    def summary(self) -> Dict:
        rows = self.repo.get_all()
        active = [r for r in rows if r['is_active']]
        return {
            'total_providers': len(rows),
            'active_providers': len(active),
            'inactive_providers': len(rows) - len(active),
        }

    def get_provider(self, provider_id: int) -> Optional[Dict]:
        row = self.repo.get_by_id(provider_id)
        if row is None:
            return None
        row['stats'] = self.repo.transaction_stats(row['name'])
        row['recent_transactions'] = self.repo.recent_transactions(row['name'])
        return row

    def _require(self, provider_id: int) -> Dict:
        row = self.repo.get_by_id(provider_id)
        if row is None:
            raise LookupError(f"HMO provider {provider_id} not found")
        return row

    def _parse(self, data: Dict, provider_id: Optional[int] = None) -> Dict:
        errors: Dict[str, str] = {}
        name = require(data, 'name', errors, max_length=255)
        code = require(data, 'code', errors, max_length=50)
        provider = {
            'name': name,
            'code': code.upper() if code else None,
            'description': optional(data, 'description', errors),
            'contact_number': optional(data, 'contact_number', errors, 50),
            'email': optional(data, 'email', errors, 255),
            'address': optional(data, 'address', errors),
            'is_active': 1 if parse_bool(data, 'is_active') else 0,
        }
        if provider['email'] and not is_email(provider['email']):
            errors['email'] = 'The email must be a valid email address.'
        if name and self.repo.find_by('name', name, exclude_id=provider_id):
            errors['name'] = 'The name has already been taken.'
        if code and self.repo.find_by('code', code, exclude_id=provider_id):
            errors['code'] = 'The code has already been taken.'
        if errors:
            raise ValidationError(errors)
        return provider

    def create_provider(self, data: Dict) -> Dict:
        provider = self._parse(data)
        stamp = now_str()
        provider_id = self.repo.create(**provider, created_at=stamp, updated_at=stamp)
        print(f"[HmoProviderService] Added HMO provider {provider['name']} ({provider['code']})")
        return self.repo.get_by_id(provider_id)

    def update_provider(self, provider_id: int, data: Dict) -> Dict:
        row = self._require(provider_id)
        provider = self._parse(data, provider_id)
        self.repo.update(provider_id, {**provider, 'updated_at': now_str()})
        # Transactions store the provider by name
        if provider['name'] != row['name']:
            self.repo.rename_on_transactions(row['name'], provider['name'])
        return self.repo.get_by_id(provider_id)

    def toggle_status(self, provider_id: int) -> Dict:
        row = self._require(provider_id)
        self.repo.update(provider_id, {'is_active': 0 if row['is_active'] else 1, 'updated_at': now_str()})
        return self.repo.get_by_id(provider_id)

    def delete_provider(self, provider_id: int) -> Dict:
        """Providers already used on a transaction are kept; deactivate them instead."""
        row = self._require(provider_id)
        count = self.repo.transaction_stats(row['name'])['transactions_count']
        if count:
            raise BillingError(
                f"{row['name']} has {count} billing transaction(s) and cannot be deleted. Deactivate it instead."
            )
        self.repo.delete(provider_id)
        return row
