from django.db import models


class Supplier(models.Model):
    """Suppliers"""
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=50, unique=True, blank=True, null=True)
    phone = models.CharField(max_length=20, blank=True)
    whatsapp = models.CharField(max_length=20, blank=True, help_text='WhatsApp number for purchase orders (falls back to phone)')
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    contact_person = models.CharField(max_length=200, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def get_recipient(self, method):
        """Default recipient for sending a purchase order by the given method"""
        if method == 'email':
            return self.email
        return self.whatsapp or self.phone

    class Meta:
        db_table = 'suppliers'
