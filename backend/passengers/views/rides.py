# passengers/views/rides.py

from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from common.permissions import IsPassenger
from services import ride_management
from services.ride_management import Place
from rides.serializers import (
    RideSerializer,
    RideParticipantSerializer,
    PassengerRideHistorySerializer,
    SingleRideCreateSerializer,
    SharedRideCreateSerializer,
    JoinSharedRideSerializer,
)


def _places(data):
    pickup = Place(
        address=data["pickup_address"],
        latitude=data.get("pickup_latitude"),
        longitude=data.get("pickup_longitude"),
    )
    destination = Place(
        address=data["destination_address"],
        latitude=data.get("destination_latitude"),
        longitude=data.get("destination_longitude"),
    )
    return pickup, destination


class PassengerCreateSingleRideView(APIView):
    """
    POST: Passenger creates a single ride.
    """
    permission_classes = [IsAuthenticated, IsPassenger]

    def post(self, request):
        serializer = SingleRideCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        pickup, destination = _places(data)

        result = ride_management.create_single_ride(
            passenger=request.user,
            pickup=pickup,
            destination=destination,
            fare=data["fare"],
            distance_km=data.get("distance_km"),
            scheduled_at=data.get("scheduled_at"),
            vehicle_type=data.get("vehicle_type"),
        )

        return Response(
            {"message": result.message, "ride": RideSerializer(result.ride).data},
            status=status.HTTP_201_CREATED,
        )


class PassengerCreateSharedRideView(APIView):
    """
    POST: Passenger creates a shared ride and gets the join code to share.
    """
    permission_classes = [IsAuthenticated, IsPassenger]

    def post(self, request):
        serializer = SharedRideCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        pickup, destination = _places(data)

        result = ride_management.create_shared_ride(
            passenger=request.user,
            pickup=pickup,
            destination=destination,
            fare=data["fare"],
            vehicle_type=data["vehicle_type"],
            capacity=data.get("capacity"),
            distance_km=data.get("distance_km"),
            scheduled_at=data.get("scheduled_at"),
        )

        return Response(
            {
                "message": result.message,
                "ride": RideSerializer(result.ride).data,
                "shared_code": result.extra["shared_code"],
            },
            status=status.HTTP_201_CREATED,
        )


class PassengerJoinSharedRideView(APIView):
    """
    POST: Passenger joins a shared ride with its 4-character code.
    """
    permission_classes = [IsAuthenticated, IsPassenger]

    def post(self, request):
        serializer = JoinSharedRideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ride_management.join_shared_ride(request.user, serializer.validated_data["code"])

        return Response({
            "message": result.message,
            "participant": RideParticipantSerializer(result.extra["participant"]).data,
        })


class PassengerCancelRideView(APIView):
    """
    POST: Passenger cancels a ride (or leaves a shared one).
    """
    permission_classes = [IsAuthenticated, IsPassenger]

    def post(self, request, ride_id: int):
        result = ride_management.cancel_ride(request.user, ride_id)

        extra = result.extra or {}
        return Response({
            "success": True,
            "message": result.message,
            "ride_id": result.ride.id,
            "status": result.ride.status,
            "was_assigned": extra.get("was_assigned", False),
            "left_ride": extra.get("left_ride", False),
        })


class PassengerRideHistoryView(APIView):
    """
    GET: Every ride the passenger created or joined, newest first.
    """
    permission_classes = [IsAuthenticated, IsPassenger]

    def get(self, request):
        participations = ride_management.get_passenger_rides(request.user)
        rides = [p.ride for p in participations]
        data = PassengerRideHistorySerializer(rides, many=True).data
        return Response({"count": len(data), "rides": data})
