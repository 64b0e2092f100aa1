#loose-object database in the git format: blobs, trees and commits under .git/objects
