"""Contact model: keeps fullName in step with firstName and lastName"""

from ..core.model import Model


class Contact(Model):

    def __init__(self, data=None, feather=None, **kwargs):
        catalog = kwargs.get('catalog')
        if feather is None and catalog is not None:
            feather = catalog.get_feather('Contact')

        super().__init__(data, feather, **kwargs)

        if 'fullName' in self:
            for name in ('firstName', 'lastName'):
                if name in self:
                    self.on_changed(name, self._update_full_name)

    def natural_key(self):
        return self['fullName']

    def _update_full_name(self, prop):
        if self['firstName']:
            self['fullName'] = f"{self['firstName']} {self['lastName'] or ''}".rstrip()
        else:
            self['fullName'] = self['lastName'] or ''
