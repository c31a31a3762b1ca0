from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.serializers import UserSerializer
from common.permissions import IsAdmin
from rides.serializers import RideSerializer

from dashboard import services


class AdminUserListView(APIView):
    """
    GET: Every account, newest first. `?role=passenger|rider|admin` filters.
    """
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        users = services.list_users(request.user, request.query_params.get("role"))
        serializer = UserSerializer(users, many=True, context={"request": request})
        return Response({"count": len(serializer.data), "users": serializer.data})


class AdminRideListView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        rides = services.list_rides(request.user)
        serializer = RideSerializer(rides, many=True, context={"request": request})
        return Response({"count": len(serializer.data), "rides": serializer.data})


class AdminStatsView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def get(self, request):
        return Response(services.stats(request.user))
