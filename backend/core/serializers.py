from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, AuditLog


class UserSerializer(serializers.ModelSerializer):
    avatar = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'name', 'avatar', 'job_title', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_avatar(self, obj):
        return obj.get_avatar_url()


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """Profile edits: display name, job title and avatar only"""

    class Meta:
        model = User
        fields = ['name', 'job_title', 'avatar']
        extra_kwargs = {
            'name': {'required': False},
            'job_title': {'required': False},
            'avatar': {'required': False},
        }

    def validate_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Name cannot be empty")
        return value.strip()


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'name', 'job_title', 'password', 'password_confirm']
        extra_kwargs = {
            'job_title': {'required': False},
        }

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        user = User(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        return user


class AuditLogSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'project_id', 'changes', 'ip_address', 'created_at']
