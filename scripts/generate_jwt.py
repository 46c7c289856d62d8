from jose import jwt
import argparse
import datetime

"""
CLI utility to generate a JWT for calling owner-only share page endpoints
(analytics, annotation deletion).

Example usage:
    python scripts/generate_jwt.py --secret 'your-actual-secret' --user-id 42 --seconds 600
"""

def main():
    parser = argparse.ArgumentParser(description="Generate a test JWT.")
    parser.add_argument("--secret", required=True, help="JWT secret key")
    parser.add_argument("--user-id", required=True, type=int, help="Numeric user ID (sub claim)")
    parser.add_argument("--algorithm", default="HS256", help="Signing algorithm (default: HS256)")
    parser.add_argument("--seconds", type=int, default=3600, help="Token expiry in seconds (default: 3600, i.e. 1 hour)")
    args = parser.parse_args()

    payload = {
        "sub": str(args.user_id),
        "exp": datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(seconds=args.seconds)
    }
    print(payload)
    token = jwt.encode(payload, args.secret, algorithm=args.algorithm)
    print("----------------------------------------------------------\n")
    print(token)

if __name__ == "__main__":
    main()
