from django.conf import settings
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework_simplejwt.tokens import RefreshToken

from .serializers import (
    UserSerializer,
    PassengerRegisterSerializer,
    RiderRegisterSerializer,
    PassengerLoginSerializer,
    RiderLoginSerializer,
    AdminLoginSerializer,
    ProfileUpdateSerializer,
    ProfilePhotoSerializer,
)
from . import services


def _token_response(user, request, message, status_code=status.HTTP_200_OK):
    """Build the login/registration payload and set the access token cookie."""
    tokens = services.issue_tokens(user)
    response = Response({
        'message': message,
        'user': UserSerializer(user, context={'request': request}).data,
        'tokens': tokens,
    }, status=status_code)
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        tokens['access'],
        max_age=int(settings.SIMPLE_JWT['ACCESS_TOKEN_LIFETIME'].total_seconds()),
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite='Lax',
    )
    return response


class PassengerRegisterView(APIView):
    """
    Register a new passenger

    POST Body:
    {
        "name": "Jane Doe",
        "email": "jane@campus.edu",
        "phone": "0712345678",
        "gender": "female",
        "registration_number": "SCT-221-001",
        "password": "password123"
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = PassengerRegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return _token_response(user, request, 'Passenger registered successfully', status.HTTP_201_CREATED)


class RiderRegisterView(APIView):
    """
    Register a new rider

    POST Body:
    {
        "name": "John Rider",
        "license_number": "DL-778812",
        "license_plate": "KMDA 123A",
        "phone": "0722000111",
        "password": "password123"
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = RiderRegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return _token_response(user, request, 'Rider registered successfully', status.HTTP_201_CREATED)


class BaseLoginView(APIView):
    """Login with role-specific credentials to get JWT tokens."""
    permission_classes = (AllowAny,)
    authentication_classes = []
    serializer_class = None

    def post(self, request):
        serializer = self.serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = serializer.get_user()
        if user is None:
            return Response(
                {'error': 'Invalid credentials'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        return _token_response(user, request, 'Login successful')


class PassengerLoginView(BaseLoginView):
    """POST {"email": ..., "password": ...}"""
    serializer_class = PassengerLoginSerializer


class RiderLoginView(BaseLoginView):
    """POST {"phone": ..., "password": ...}"""
    serializer_class = RiderLoginSerializer


class AdminLoginView(BaseLoginView):
    """POST {"email": ..., "password": ...}"""
    serializer_class = AdminLoginSerializer


class RefreshTokenView(APIView):
    """
    Refresh JWT access token

    POST Body:
    {
        "refresh": "your_refresh_token"
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        refresh_token = request.data.get('refresh')

        if not refresh_token:
            return Response(
                {'error': 'Refresh token is required'},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            refresh = RefreshToken(refresh_token)
            return Response({
                'access': str(refresh.access_token)
            })
        except Exception:
            return Response(
                {'error': 'Invalid refresh token'},
                status=status.HTTP_401_UNAUTHORIZED
            )


class LogoutView(APIView):
    """Clear the access token cookie. Header-based clients just drop their tokens."""
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        response = Response({'message': 'Logged out'})
        response.delete_cookie(settings.AUTH_COOKIE_NAME)
        return response


class MeView(APIView):
    """
    GET  -> Retrieve the authenticated user's profile
    PATCH -> Partially update name / email / phone
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({'user': UserSerializer(request.user, context={'request': request}).data})

    def patch(self, request):
        serializer = ProfileUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response({
            'message': 'Profile updated',
            'user': UserSerializer(user, context={'request': request}).data,
        })


class ProfilePhotoView(APIView):
    """
    POST   -> Upload (or replace) profile photo, multipart field `photo`
    DELETE -> Remove profile photo
    """
    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        serializer = ProfilePhotoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = services.replace_profile_photo(request.user, serializer.validated_data['photo'])
        return Response({
            'message': 'Profile photo updated',
            'user': UserSerializer(user, context={'request': request}).data,
        })

    def delete(self, request):
        if not services.remove_profile_photo(request.user):
            return Response({'error': 'No profile photo to delete'}, status=status.HTTP_404_NOT_FOUND)
        return Response({'message': 'Profile photo deleted'})
