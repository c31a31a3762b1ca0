from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from common.permissions import IsRider
from riders.serializers import RiderProfileSerializer, AcceptLocationSerializer
from rides.models import Ride
from rides.serializers import RideSerializer, RideDetailSerializer
from services import ride_management

from riders import services


class RiderProfileView(APIView):
    permission_classes = [IsAuthenticated, IsRider]

    def get(self, request):
        profile = services.get_rider_profile(request.user)
        serializer = RiderProfileSerializer(profile, context={"request": request})
        return Response(serializer.data)

    def patch(self, request):
        profile = services.get_rider_profile(request.user)

        serializer = RiderProfileSerializer(profile, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        services.update_rider_profile(profile, **serializer.validated_data)

        return Response(RiderProfileSerializer(profile, context={"request": request}).data)


class AvailableRidesView(APIView):
    """
    GET: PENDING rides of one type waiting for a rider.
    Shared rides that are already full are not listed.
    """
    permission_classes = [IsAuthenticated, IsRider]
    ride_type = Ride.TYPE_SINGLE

    def get(self, request):
        rides = ride_management.list_available_rides(request.user, self.ride_type)
        serialized = RideSerializer(rides, many=True, context={"request": request})
        return Response({"rides": serialized.data, "count": len(serialized.data)})


class AvailableSingleRidesView(AvailableRidesView):
    ride_type = Ride.TYPE_SINGLE


class AvailableSharedRidesView(AvailableRidesView):
    ride_type = Ride.TYPE_SHARED


class AcceptRideView(APIView):
    """
    POST: Claim a pending ride. Body carries the rider's current location.
    Two riders racing for the same ride: one gets 200, the other 409.
    """
    permission_classes = [IsAuthenticated, IsRider]

    def post(self, request, ride_id: int):
        serializer = AcceptLocationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ride_management.accept_ride(
            request.user,
            ride_id,
            serializer.validated_data["latitude"],
            serializer.validated_data["longitude"],
        )

        return Response({
            "message": result.message,
            "ride": RideDetailSerializer(result.ride, context={"request": request}).data,
        })


class CompleteRideView(APIView):
    permission_classes = [IsAuthenticated, IsRider]

    def post(self, request, ride_id: int):
        result = ride_management.complete_ride(request.user, ride_id)
        return Response({
            "message": result.message,
            "ride_id": result.ride.id,
            "status": result.ride.status,
        })


class RiderCurrentRideView(APIView):
    permission_classes = [IsAuthenticated, IsRider]

    def get(self, request):
        ride = services.current_ride(request.user)
        if not ride:
            return Response({"message": "No active ride"}, status=status.HTTP_404_NOT_FOUND)

        serializer = RideDetailSerializer(ride, context={"request": request})
        return Response(serializer.data)


class RiderRideHistoryView(APIView):
    permission_classes = [IsAuthenticated, IsRider]

    def get(self, request):
        rides = ride_management.get_rider_rides(request.user)
        serializer = RideSerializer(rides, many=True, context={"request": request})

        return Response({"count": len(serializer.data), "rides": serializer.data})
